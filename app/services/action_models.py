from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any


class ActionKind(StrEnum):
    create_task = "create_task"
    create_schedule = "create_schedule"
    create_habit = "create_habit"
    create_note = "create_note"


class EntityKind(StrEnum):
    task = "task"
    schedule = "schedule"
    habit = "habit"
    note = "note"


class ActionStatus(StrEnum):
    requested = "requested"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"
    failed = "failed"


class TaskPriority(StrEnum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class ScheduleType(StrEnum):
    event = "event"
    meeting = "meeting"
    deadline = "deadline"
    class_ = "class"
    exam = "exam"
    task = "task"


class HabitFrequency(StrEnum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    every_other_day = "every_other_day"
    weekdays = "weekdays"
    weekends = "weekends"


ENTITY_BY_ACTION_KIND: dict[ActionKind, EntityKind] = {
    ActionKind.create_task: EntityKind.task,
    ActionKind.create_schedule: EntityKind.schedule,
    ActionKind.create_habit: EntityKind.habit,
    ActionKind.create_note: EntityKind.note,
}

TERMINAL_STATUSES = frozenset(
    {ActionStatus.completed, ActionStatus.failed, ActionStatus.rejected},
)

DEFAULT_HABIT_ICON = "📌"
DEFAULT_HABIT_COLOR = "#10b981"


class ActionPipelineError(Exception):
    pass


class ActionNotFoundError(ActionPipelineError):
    pass


class ActionStateError(ActionPipelineError):
    pass


class ActionValidationError(ActionPipelineError):
    pass


class DomainStoreError(Exception):
    pass


class DomainValidationError(Exception):
    pass


class ContextUnavailableError(Exception):
    pass


@dataclass
class TaskParameters:
    title: str
    description: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority = TaskPriority.medium
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date,
            "priority": self.priority.value,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TaskParameters:
        return cls(
            title=str(payload.get("title") or ""),
            description=_optional_text(payload.get("description")),
            due_date=_optional_datetime(payload.get("due_date")),
            priority=TaskPriority(payload.get("priority") or TaskPriority.medium),
            category=_optional_text(payload.get("category")),
        )


@dataclass
class ScheduleParameters:
    title: str
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    type: ScheduleType = ScheduleType.event
    location: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "type": self.type.value,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ScheduleParameters:
        return cls(
            title=str(payload.get("title") or ""),
            description=_optional_text(payload.get("description")),
            start_time=_optional_datetime(payload.get("start_time")),
            end_time=_optional_datetime(payload.get("end_time")),
            type=ScheduleType(payload.get("type") or ScheduleType.event),
            location=_optional_text(payload.get("location")),
        )


@dataclass
class HabitParameters:
    name: str
    description: str | None = None
    frequency: HabitFrequency = HabitFrequency.daily
    icon: str = DEFAULT_HABIT_ICON
    color: str = DEFAULT_HABIT_COLOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "frequency": self.frequency.value,
            "icon": self.icon,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> HabitParameters:
        return cls(
            name=str(payload.get("name") or ""),
            description=_optional_text(payload.get("description")),
            frequency=HabitFrequency(payload.get("frequency") or HabitFrequency.daily),
            icon=str(payload.get("icon") or DEFAULT_HABIT_ICON),
            color=str(payload.get("color") or DEFAULT_HABIT_COLOR),
        )


@dataclass
class NoteParameters:
    title: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "content": self.content}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> NoteParameters:
        return cls(
            title=str(payload.get("title") or ""),
            content=str(payload.get("content") or ""),
        )


ParameterSet = TaskParameters | ScheduleParameters | HabitParameters | NoteParameters

PARAMETERS_BY_ACTION_KIND: dict[ActionKind, type[ParameterSet]] = {
    ActionKind.create_task: TaskParameters,
    ActionKind.create_schedule: ScheduleParameters,
    ActionKind.create_habit: HabitParameters,
    ActionKind.create_note: NoteParameters,
}


@dataclass
class ActionIntent:
    kind: ActionKind
    target_entity: EntityKind
    parameters: ParameterSet
    source_message: str
    source_reply: str | None = None


@dataclass(frozen=True)
class ContextHints:
    recent_topics: tuple[str, ...] = ()
    preferred_style: str | None = None


@dataclass
class ExecutionResult:
    success: bool
    message: str
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, "data": self.data}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ExecutionResult:
        data = payload.get("data")
        return cls(
            success=bool(payload.get("success")),
            message=str(payload.get("message") or ""),
            data=dict(data) if isinstance(data, Mapping) else None,
        )


@dataclass
class ActionRecord:
    id: str
    owner_id: str
    conversation_id: str
    kind: ActionKind
    target_entity: EntityKind
    parameters: ParameterSet
    status: ActionStatus
    source_message: str
    source_reply: str | None
    created_at: datetime
    updated_at: datetime
    created_result_ref: str | None = None
    execution_result: ExecutionResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_document(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "conversation_id": self.conversation_id,
            "kind": self.kind.value,
            "target_entity": self.target_entity.value,
            "parameters": self.parameters.to_dict(),
            "status": self.status.value,
            "created_result_ref": self.created_result_ref,
            "execution_result": self.execution_result.to_dict() if self.execution_result else None,
            "source_message": self.source_message,
            "source_reply": self.source_reply,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> ActionRecord:
        kind = ActionKind(document["kind"])
        parameters_cls = PARAMETERS_BY_ACTION_KIND[kind]
        raw_result = document.get("execution_result")
        return cls(
            id=str(document.get("_id", "")),
            owner_id=str(document.get("owner_id", "")),
            conversation_id=str(document.get("conversation_id", "")),
            kind=kind,
            target_entity=EntityKind(document["target_entity"]),
            parameters=parameters_cls.from_dict(document.get("parameters") or {}),
            status=ActionStatus(document["status"]),
            source_message=str(document.get("source_message") or ""),
            source_reply=_optional_text(document.get("source_reply")),
            created_at=document["created_at"],
            updated_at=document.get("updated_at") or document["created_at"],
            created_result_ref=_optional_text(document.get("created_result_ref")),
            execution_result=(
                ExecutionResult.from_dict(raw_result) if isinstance(raw_result, Mapping) else None
            ),
        )


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _optional_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None
