from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.services.action_models import ActionKind, ActionStatus, EntityKind


class ActionDetectionRequest(BaseModel):
    user_message: str = Field(min_length=1, max_length=4000)
    assistant_reply: str | None = Field(default=None, max_length=8000)
    conversation_id: str = Field(min_length=1, max_length=128)


class ActionDecisionRequest(BaseModel):
    approved: bool


class ExecutionResultResponse(BaseModel):
    success: bool
    message: str
    data: dict[str, Any] | None = None


class ActionRecordResponse(BaseModel):
    id: str
    owner_id: str
    conversation_id: str
    kind: ActionKind
    target_entity: EntityKind
    parameters: dict[str, Any]
    status: ActionStatus
    created_result_ref: str | None = None
    execution_result: ExecutionResultResponse | None = None
    source_message: str
    source_reply: str | None = None
    created_at: datetime
    updated_at: datetime


class ActionDetectionResponse(BaseModel):
    action: ActionRecordResponse | None = None
    auto_executed: bool = False


class ActionRecordsResponse(BaseModel):
    items: list[ActionRecordResponse] = Field(default_factory=list)
    total: int = 0
