import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.config import get_settings
from app.schemas.action import (
    ActionDecisionRequest,
    ActionDetectionRequest,
    ActionDetectionResponse,
    ActionRecordResponse,
    ActionRecordsResponse,
    ExecutionResultResponse,
)
from app.services.action_models import (
    ActionNotFoundError,
    ActionPipelineError,
    ActionRecord,
    ActionStateError,
    ActionStatus,
    ActionValidationError,
)
from app.services.action_pipeline_service import ActionPipelineService

router = APIRouter(prefix="/actions", tags=["actions"])
logger = logging.getLogger(__name__)

_STATUS_CODE_BY_ERROR: tuple[tuple[type[ActionPipelineError], int], ...] = (
    (ActionNotFoundError, status.HTTP_404_NOT_FOUND),
    (ActionStateError, status.HTTP_409_CONFLICT),
    (ActionValidationError, 422),
)


def require_owner_id(request: Request) -> str:
    owner_id = (request.headers.get("x-user-id") or "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return owner_id


@router.post("/detect", response_model=ActionDetectionResponse)
def detect_action(
    payload: ActionDetectionRequest,
    owner_id: str = Depends(require_owner_id),
) -> ActionDetectionResponse:
    service = ActionPipelineService(get_settings())
    try:
        record = service.detect_and_request_action(
            payload.user_message,
            payload.assistant_reply,
            owner_id=owner_id,
            conversation_id=payload.conversation_id,
        )
    except ActionPipelineError as exc:
        raise _to_http_exception(exc, owner_id=owner_id) from exc

    if record is None:
        return ActionDetectionResponse(action=None, auto_executed=False)
    return ActionDetectionResponse(
        action=_to_action_response(record),
        auto_executed=record.status != ActionStatus.requested,
    )


@router.post("/{action_id}/decision", response_model=ExecutionResultResponse)
def decide_action(
    action_id: str,
    payload: ActionDecisionRequest,
    owner_id: str = Depends(require_owner_id),
) -> ExecutionResultResponse:
    service = ActionPipelineService(get_settings())
    try:
        result = service.decide_action(action_id, owner_id=owner_id, approved=payload.approved)
    except ActionPipelineError as exc:
        raise _to_http_exception(exc, owner_id=owner_id, action_id=action_id) from exc

    logger.info(
        "Action decided action_id=%s owner_id=%s approved=%s success=%s",
        action_id,
        owner_id,
        payload.approved,
        result.success,
    )
    return ExecutionResultResponse(**result.to_dict())


@router.get("/pending", response_model=ActionRecordsResponse)
def list_pending_actions(owner_id: str = Depends(require_owner_id)) -> ActionRecordsResponse:
    service = ActionPipelineService(get_settings())
    items = [_to_action_response(record) for record in service.list_pending_actions(owner_id)]
    return ActionRecordsResponse(items=items, total=len(items))


@router.get("/conversations/{conversation_id}", response_model=ActionRecordsResponse)
def list_conversation_actions(
    conversation_id: str,
    owner_id: str = Depends(require_owner_id),
) -> ActionRecordsResponse:
    service = ActionPipelineService(get_settings())
    items = [
        _to_action_response(record)
        for record in service.list_conversation_actions(conversation_id)
        if record.owner_id == owner_id
    ]
    return ActionRecordsResponse(items=items, total=len(items))


def _to_action_response(record: ActionRecord) -> ActionRecordResponse:
    return ActionRecordResponse(
        id=record.id,
        owner_id=record.owner_id,
        conversation_id=record.conversation_id,
        kind=record.kind,
        target_entity=record.target_entity,
        parameters=record.parameters.to_dict(),
        status=record.status,
        created_result_ref=record.created_result_ref,
        execution_result=(
            ExecutionResultResponse(**record.execution_result.to_dict())
            if record.execution_result
            else None
        ),
        source_message=record.source_message,
        source_reply=record.source_reply,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_http_exception(
    exc: ActionPipelineError,
    *,
    owner_id: str,
    action_id: str | None = None,
) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_cls, mapped_status in _STATUS_CODE_BY_ERROR:
        if isinstance(exc, error_cls):
            status_code = mapped_status
            break
    logger.warning(
        "Action request rejected owner_id=%s action_id=%s status_code=%s detail=%s",
        owner_id,
        action_id,
        status_code,
        exc,
    )
    return HTTPException(status_code=status_code, detail=str(exc))
