from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

from app.services.action_lifecycle import ActionLifecycleManager
from app.services.action_models import (
    ActionRecord,
    ActionStateError,
    ActionStatus,
    DomainStoreError,
    DomainValidationError,
    EntityKind,
    ExecutionResult,
    HabitParameters,
    NoteParameters,
    ParameterSet,
    ScheduleParameters,
    TaskParameters,
)
from app.services.domain_record_store import DomainRecordStore
from app.services.field_extractors import schedule_color

logger = logging.getLogger(__name__)

REJECTION_MESSAGE = "Action rejected by user"
DEFAULT_NOTE_COLOR = "#F59E0B"

_PARAMETERS_BY_ENTITY: dict[EntityKind, type] = {
    EntityKind.task: TaskParameters,
    EntityKind.schedule: ScheduleParameters,
    EntityKind.habit: HabitParameters,
    EntityKind.note: NoteParameters,
}


def validate_parameters(entity_kind: EntityKind, parameters: ParameterSet) -> None:
    expected_cls = _PARAMETERS_BY_ENTITY[entity_kind]
    if not isinstance(parameters, expected_cls):
        raise DomainValidationError(
            f"Parameters {type(parameters).__name__} do not describe a {entity_kind.value}.",
        )
    if isinstance(parameters, HabitParameters):
        if not parameters.name.strip():
            raise DomainValidationError("Habit name cannot be empty.")
        return
    if not parameters.title.strip():
        raise DomainValidationError(f"{entity_kind.value.capitalize()} title cannot be empty.")
    if isinstance(parameters, ScheduleParameters) and parameters.start_time is None:
        raise DomainValidationError("Schedule start time cannot be empty.")


def _task_fields(parameters: TaskParameters) -> dict[str, Any]:
    return {
        "title": parameters.title,
        "description": parameters.description,
        "due_date": parameters.due_date,
        "priority": parameters.priority.value,
        "labels": [parameters.category] if parameters.category else [],
        "status": "todo",
    }


def _schedule_fields(parameters: ScheduleParameters) -> dict[str, Any]:
    return {
        "title": parameters.title,
        "description": parameters.description or "",
        "start_time": parameters.start_time,
        "end_time": parameters.end_time,
        "is_all_day": False,
        "type": parameters.type.value,
        "location": parameters.location or "",
        "priority": "medium",
        "status": "scheduled",
        "color": schedule_color(parameters.type),
    }


def _habit_fields(parameters: HabitParameters) -> dict[str, Any]:
    return {
        "name": parameters.name,
        "description": parameters.description,
        "frequency": parameters.frequency.value,
        "icon": parameters.icon,
        "color": parameters.color,
        "streak": 0,
        "longest_streak": 0,
    }


def _note_fields(parameters: NoteParameters) -> dict[str, Any]:
    return {
        "title": parameters.title,
        "content": parameters.content,
        "color": DEFAULT_NOTE_COLOR,
    }


DOMAIN_FIELD_BUILDERS: dict[EntityKind, Callable[[Any], dict[str, Any]]] = {
    EntityKind.task: _task_fields,
    EntityKind.schedule: _schedule_fields,
    EntityKind.habit: _habit_fields,
    EntityKind.note: _note_fields,
}


class ActionExecutor:
    def __init__(self, domain_store: DomainRecordStore, lifecycle: ActionLifecycleManager) -> None:
        self.domain_store = domain_store
        self.lifecycle = lifecycle

    def execute(self, record: ActionRecord) -> tuple[ActionRecord, ExecutionResult]:
        if record.status != ActionStatus.approved:
            raise ActionStateError(
                f"Action {record.id} must be approved before execution; it is {record.status}.",
            )

        result = self._create_domain_record(record)
        new_status = ActionStatus.completed if result.success else ActionStatus.failed
        updated = self.lifecycle.transition(record.id, new_status, result)
        if result.success:
            logger.info(
                "Action executed action_id=%s entity=%s created_result_ref=%s",
                record.id,
                record.target_entity,
                updated.created_result_ref,
            )
        else:
            logger.warning(
                "Action execution failed action_id=%s entity=%s reason=%s",
                record.id,
                record.target_entity,
                result.message,
            )
        return updated, result

    def reject(self, record: ActionRecord) -> tuple[ActionRecord, ExecutionResult]:
        result = ExecutionResult(success=False, message=REJECTION_MESSAGE)
        updated = self.lifecycle.transition(record.id, ActionStatus.rejected, result)
        logger.info("Action rejected action_id=%s owner_id=%s", record.id, record.owner_id)
        return updated, result

    def _create_domain_record(self, record: ActionRecord) -> ExecutionResult:
        entity_label = record.target_entity.value
        try:
            validate_parameters(record.target_entity, record.parameters)
            fields = DOMAIN_FIELD_BUILDERS[record.target_entity](record.parameters)
            created = self.domain_store.create(record.target_entity, record.owner_id, fields)
        except (DomainValidationError, DomainStoreError) as exc:
            return ExecutionResult(
                success=False,
                message=f"Failed to create {entity_label}: {exc}",
            )
        return ExecutionResult(
            success=True,
            message=f"{entity_label.capitalize()} created successfully",
            data=created,
        )
