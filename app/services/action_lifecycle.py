from __future__ import annotations

from datetime import UTC, datetime
import logging

from app.services.action_models import (
    ENTITY_BY_ACTION_KIND,
    ActionIntent,
    ActionNotFoundError,
    ActionRecord,
    ActionStateError,
    ActionStatus,
    ActionValidationError,
    ExecutionResult,
)
from app.services.action_record_store import ActionRecordStore

logger = logging.getLogger(__name__)

DEFAULT_PENDING_LIMIT = 10

ALLOWED_TRANSITIONS: dict[ActionStatus, frozenset[ActionStatus]] = {
    ActionStatus.requested: frozenset({ActionStatus.approved, ActionStatus.rejected}),
    ActionStatus.approved: frozenset({ActionStatus.completed, ActionStatus.failed}),
    ActionStatus.rejected: frozenset(),
    ActionStatus.completed: frozenset(),
    ActionStatus.failed: frozenset(),
}


class ActionLifecycleManager:
    def __init__(self, store: ActionRecordStore, *, pending_limit: int = DEFAULT_PENDING_LIMIT) -> None:
        self.store = store
        self.pending_limit = pending_limit if pending_limit > 0 else DEFAULT_PENDING_LIMIT

    def create(self, intent: ActionIntent, *, owner_id: str, conversation_id: str) -> ActionRecord:
        expected_entity = ENTITY_BY_ACTION_KIND.get(intent.kind)
        if expected_entity != intent.target_entity:
            raise ActionValidationError(
                f"Action kind {intent.kind} cannot target entity {intent.target_entity}.",
            )

        now = datetime.now(UTC)
        record = ActionRecord(
            id="",
            owner_id=owner_id,
            conversation_id=conversation_id,
            kind=intent.kind,
            target_entity=intent.target_entity,
            parameters=intent.parameters,
            status=ActionStatus.requested,
            source_message=intent.source_message,
            source_reply=intent.source_reply,
            created_at=now,
            updated_at=now,
        )
        stored = ActionRecord.from_document(self.store.insert(record.to_document()))
        logger.info(
            "Action requested action_id=%s owner_id=%s conversation_id=%s kind=%s",
            stored.id,
            owner_id,
            conversation_id,
            stored.kind,
        )
        return stored

    def transition(
        self,
        action_id: str,
        new_status: ActionStatus,
        result: ExecutionResult | None = None,
    ) -> ActionRecord:
        current = self.get(action_id)
        if new_status not in ALLOWED_TRANSITIONS[current.status]:
            raise ActionStateError(
                f"Action {action_id} cannot move from {current.status} to {new_status}.",
            )

        updates: dict[str, object] = {
            "status": new_status.value,
            "updated_at": datetime.now(UTC),
        }
        if result is not None:
            updates["execution_result"] = result.to_dict()
            if new_status == ActionStatus.completed and result.success and result.data:
                result_id = result.data.get("id")
                if result_id:
                    updates["created_result_ref"] = str(result_id)

        stored = self.store.compare_and_set(
            action_id,
            expected_status=current.status.value,
            updates=updates,
        )
        if stored is None:
            raise ActionStateError(
                f"Action {action_id} changed concurrently; it is no longer {current.status}.",
            )

        logger.info(
            "Action transitioned action_id=%s from_status=%s to_status=%s",
            action_id,
            current.status,
            new_status,
        )
        return ActionRecord.from_document(stored)

    def get(self, action_id: str) -> ActionRecord:
        document = self.store.get(action_id)
        if not document:
            raise ActionNotFoundError(f"Action {action_id} was not found.")
        return ActionRecord.from_document(document)

    def list_pending(self, owner_id: str) -> list[ActionRecord]:
        documents = self.store.list_by_owner(
            owner_id,
            status=ActionStatus.requested.value,
            limit=self.pending_limit,
        )
        return [ActionRecord.from_document(document) for document in documents]

    def list_for_conversation(self, conversation_id: str) -> list[ActionRecord]:
        documents = self.store.list_by_conversation(conversation_id)
        return [ActionRecord.from_document(document) for document in documents]
