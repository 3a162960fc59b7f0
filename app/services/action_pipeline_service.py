from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
from zoneinfo import ZoneInfo

from app.core.config import Settings
from app.services.action_executor import ActionExecutor
from app.services.action_lifecycle import ActionLifecycleManager
from app.services.action_models import (
    ActionNotFoundError,
    ActionRecord,
    ActionStateError,
    ActionStatus,
    ContextHints,
    ContextUnavailableError,
    ExecutionResult,
)
from app.services.action_record_store import create_action_record_store
from app.services.auto_execution_policy import should_auto_execute
from app.services.context_store import ContextStore, create_context_store
from app.services.domain_record_store import DomainRecordStore, create_domain_record_store
from app.services.parameter_assemblers import build_intent

logger = logging.getLogger(__name__)


class ActionPipelineService:
    """Turns chat turns into action records and drives them to a final state.

    Detection never raises for unrecognised messages; it returns ``None``.
    Decisions on records raise ``ActionNotFoundError`` or ``ActionStateError``
    and leave the record untouched in that case.
    """

    def __init__(
        self,
        settings: Settings,
        lifecycle: ActionLifecycleManager | None = None,
        domain_store: DomainRecordStore | None = None,
        context_store: ContextStore | None = None,
        executor: ActionExecutor | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.lifecycle = lifecycle or ActionLifecycleManager(
            create_action_record_store(settings),
            pending_limit=settings.pending_actions_page_size,
        )
        self.domain_store = domain_store or create_domain_record_store(settings)
        self.context_store = context_store or create_context_store(settings)
        self.executor = executor or ActionExecutor(self.domain_store, self.lifecycle)
        self._now = now or self._local_now

    def detect_and_request_action(
        self,
        user_message: str,
        assistant_reply: str | None,
        *,
        owner_id: str,
        conversation_id: str,
    ) -> ActionRecord | None:
        if not user_message or not user_message.strip():
            return None

        hints = self._load_hints(owner_id)
        intent = build_intent(user_message, assistant_reply, self._now(), hints)
        if intent is None:
            logger.info(
                "No action detected owner_id=%s conversation_id=%s",
                owner_id,
                conversation_id,
            )
            return None

        record = self.lifecycle.create(intent, owner_id=owner_id, conversation_id=conversation_id)
        if not should_auto_execute(intent.kind, intent.parameters):
            return record

        logger.info("Auto-executing action action_id=%s kind=%s", record.id, record.kind)
        approved = self.lifecycle.transition(record.id, ActionStatus.approved)
        executed, _ = self.executor.execute(approved)
        return executed

    def decide_action(self, action_id: str, *, owner_id: str, approved: bool) -> ExecutionResult:
        record = self.lifecycle.get(action_id)
        if record.owner_id != owner_id:
            raise ActionNotFoundError(f"Action {action_id} was not found.")
        if record.status != ActionStatus.requested:
            raise ActionStateError(
                f"Action {action_id} was already decided; current status is {record.status}.",
            )

        if not approved:
            _, result = self.executor.reject(record)
            return result

        approved_record = self.lifecycle.transition(action_id, ActionStatus.approved)
        _, result = self.executor.execute(approved_record)
        return result

    def list_pending_actions(self, owner_id: str) -> list[ActionRecord]:
        return self.lifecycle.list_pending(owner_id)

    def list_conversation_actions(self, conversation_id: str) -> list[ActionRecord]:
        return self.lifecycle.list_for_conversation(conversation_id)

    def _load_hints(self, owner_id: str) -> ContextHints | None:
        try:
            return self.context_store.get_hints(owner_id)
        except ContextUnavailableError as exc:
            logger.warning("User context unavailable owner_id=%s error=%s", owner_id, exc)
            return None

    def _local_now(self) -> datetime:
        return datetime.now(ZoneInfo(self.settings.default_timezone))
