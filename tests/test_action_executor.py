from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from app.services.action_executor import ActionExecutor, validate_parameters
from app.services.action_lifecycle import ActionLifecycleManager
from app.services.action_models import (
    ActionIntent,
    ActionKind,
    ActionRecord,
    ActionStateError,
    ActionStatus,
    DomainStoreError,
    DomainValidationError,
    EntityKind,
    HabitParameters,
    ParameterSet,
    ScheduleParameters,
    ScheduleType,
    TaskParameters,
)
from app.services.action_record_store import InMemoryActionRecordStore
from app.services.domain_record_store import DomainRecordStore, InMemoryDomainRecordStore

START = datetime(2026, 3, 11, 10, 0, tzinfo=UTC)


class FailingDomainRecordStore(DomainRecordStore):
    def create(
        self,
        entity_kind: EntityKind,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        raise DomainStoreError("database unavailable")

    def get(self, entity_kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        return None


def _approved_record(
    lifecycle: ActionLifecycleManager,
    kind: ActionKind,
    entity: EntityKind,
    parameters: ParameterSet,
) -> ActionRecord:
    record = lifecycle.create(
        ActionIntent(
            kind=kind,
            target_entity=entity,
            parameters=parameters,
            source_message="pesan",
        ),
        owner_id="user-1",
        conversation_id="conv-1",
    )
    return lifecycle.transition(record.id, ActionStatus.approved)


def test_execute_schedule_creates_domain_record_with_type_color() -> None:
    lifecycle = ActionLifecycleManager(InMemoryActionRecordStore())
    domain_store = InMemoryDomainRecordStore()
    executor = ActionExecutor(domain_store, lifecycle)
    record = _approved_record(
        lifecycle,
        ActionKind.create_schedule,
        EntityKind.schedule,
        ScheduleParameters(
            title="Rapat tim",
            start_time=START,
            end_time=START + timedelta(hours=2),
            type=ScheduleType.meeting,
        ),
    )

    updated, result = executor.execute(record)

    assert result.success is True
    assert result.message == "Schedule created successfully"
    assert updated.status == ActionStatus.completed
    assert updated.created_result_ref is not None
    stored = domain_store.get(EntityKind.schedule, updated.created_result_ref)
    assert stored is not None
    assert stored["color"] == "#EF4444"
    assert stored["owner_id"] == "user-1"
    assert stored["status"] == "scheduled"


def test_execute_task_maps_category_to_labels() -> None:
    lifecycle = ActionLifecycleManager(InMemoryActionRecordStore())
    domain_store = InMemoryDomainRecordStore()
    executor = ActionExecutor(domain_store, lifecycle)
    record = _approved_record(
        lifecycle,
        ActionKind.create_task,
        EntityKind.task,
        TaskParameters(title="Makalah", category="Ekonomi"),
    )

    updated, result = executor.execute(record)

    assert result.message == "Task created successfully"
    stored = domain_store.get(EntityKind.task, updated.created_result_ref or "")
    assert stored is not None
    assert stored["labels"] == ["Ekonomi"]
    assert stored["status"] == "todo"


def test_execute_marks_failed_on_domain_validation_error() -> None:
    lifecycle = ActionLifecycleManager(InMemoryActionRecordStore())
    executor = ActionExecutor(InMemoryDomainRecordStore(), lifecycle)
    record = _approved_record(
        lifecycle,
        ActionKind.create_task,
        EntityKind.task,
        TaskParameters(title="x" * 101),
    )

    updated, result = executor.execute(record)

    assert result.success is False
    assert result.message.startswith("Failed to create task:")
    assert updated.status == ActionStatus.failed
    assert updated.created_result_ref is None


def test_execute_marks_failed_on_store_error() -> None:
    lifecycle = ActionLifecycleManager(InMemoryActionRecordStore())
    executor = ActionExecutor(FailingDomainRecordStore(), lifecycle)
    record = _approved_record(
        lifecycle,
        ActionKind.create_habit,
        EntityKind.habit,
        HabitParameters(name="Meditasi"),
    )

    updated, result = executor.execute(record)

    assert result.success is False
    assert result.message == "Failed to create habit: database unavailable"
    assert updated.status == ActionStatus.failed


def test_execute_requires_approved_record() -> None:
    lifecycle = ActionLifecycleManager(InMemoryActionRecordStore())
    executor = ActionExecutor(InMemoryDomainRecordStore(), lifecycle)
    record = lifecycle.create(
        ActionIntent(
            kind=ActionKind.create_task,
            target_entity=EntityKind.task,
            parameters=TaskParameters(title="Laporan"),
            source_message="buat tugas Laporan",
        ),
        owner_id="user-1",
        conversation_id="conv-1",
    )

    with pytest.raises(ActionStateError):
        executor.execute(record)


def test_reject_moves_record_to_rejected_without_domain_call() -> None:
    lifecycle = ActionLifecycleManager(InMemoryActionRecordStore())
    executor = ActionExecutor(FailingDomainRecordStore(), lifecycle)
    record = lifecycle.create(
        ActionIntent(
            kind=ActionKind.create_task,
            target_entity=EntityKind.task,
            parameters=TaskParameters(title="Laporan"),
            source_message="buat tugas Laporan",
        ),
        owner_id="user-1",
        conversation_id="conv-1",
    )

    updated, result = executor.reject(record)

    assert result.success is False
    assert result.message == "Action rejected by user"
    assert result.data is None
    assert updated.status == ActionStatus.rejected


def test_validate_parameters_rejects_missing_schedule_start() -> None:
    with pytest.raises(DomainValidationError):
        validate_parameters(EntityKind.schedule, ScheduleParameters(title="Rapat"))
    with pytest.raises(DomainValidationError):
        validate_parameters(EntityKind.note, TaskParameters(title="Laporan"))
