from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from app.core.config import Settings
from app.services.action_lifecycle import ActionLifecycleManager
from app.services.action_models import (
    ActionKind,
    ActionNotFoundError,
    ActionStateError,
    ActionStatus,
    ContextHints,
    ContextUnavailableError,
    EntityKind,
    ScheduleParameters,
    TaskParameters,
)
from app.services.action_pipeline_service import ActionPipelineService
from app.services.action_record_store import InMemoryActionRecordStore
from app.services.context_store import ContextStore, InMemoryContextStore
from app.services.domain_record_store import InMemoryDomainRecordStore

JAKARTA = ZoneInfo("Asia/Jakarta")
REFERENCE = datetime(2026, 3, 10, 8, 30, tzinfo=JAKARTA)


class UnavailableContextStore(ContextStore):
    def get_hints(self, owner_id: str) -> ContextHints | None:
        raise ContextUnavailableError("context database offline")


def _build_service(
    context_store: ContextStore | None = None,
) -> tuple[ActionPipelineService, InMemoryDomainRecordStore]:
    settings = Settings(
        actions_store="memory",
        domain_records_store="memory",
        user_context_store="memory",
    )
    domain_store = InMemoryDomainRecordStore()
    service = ActionPipelineService(
        settings,
        lifecycle=ActionLifecycleManager(InMemoryActionRecordStore()),
        domain_store=domain_store,
        context_store=context_store or InMemoryContextStore(),
        now=lambda: REFERENCE,
    )
    return service, domain_store


def test_task_request_waits_for_confirmation_then_completes() -> None:
    service, domain_store = _build_service()

    record = service.detect_and_request_action(
        "tolong buatkan tugas Laporan Keuangan dengan deadline besok jam 14",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )

    assert record is not None
    assert record.kind == ActionKind.create_task
    assert record.status == ActionStatus.requested
    assert isinstance(record.parameters, TaskParameters)
    assert record.parameters.title == "Laporan Keuangan"
    assert [item.id for item in service.list_pending_actions("user-1")] == [record.id]

    result = service.decide_action(record.id, owner_id="user-1", approved=True)

    assert result.success is True
    assert result.message == "Task created successfully"
    completed = service.lifecycle.get(record.id)
    assert completed.status == ActionStatus.completed
    stored = domain_store.get(EntityKind.task, completed.created_result_ref or "")
    assert stored is not None
    assert stored["title"] == "Laporan Keuangan"
    assert stored["due_date"] == datetime(2026, 3, 11, 14, 0, tzinfo=JAKARTA)
    assert service.list_pending_actions("user-1") == []


def test_schedule_request_is_auto_executed() -> None:
    service, domain_store = _build_service()

    record = service.detect_and_request_action(
        "jadwalkan rapat tim besok jam 10 selama 2 jam",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )

    assert record is not None
    assert record.status == ActionStatus.completed
    assert isinstance(record.parameters, ScheduleParameters)
    assert record.execution_result is not None
    assert record.execution_result.message == "Schedule created successfully"
    stored = domain_store.get(EntityKind.schedule, record.created_result_ref or "")
    assert stored is not None
    assert stored["title"] == "Rapat tim"
    assert stored["start_time"] == datetime(2026, 3, 11, 10, 0, tzinfo=JAKARTA)
    assert stored["end_time"] == datetime(2026, 3, 11, 12, 0, tzinfo=JAKARTA)


def test_habit_request_is_auto_executed() -> None:
    service, domain_store = _build_service()

    record = service.detect_and_request_action(
        "buat kebiasaan minum air putih setiap hari untuk menjaga kesehatan",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )

    assert record is not None
    assert record.kind == ActionKind.create_habit
    assert record.status == ActionStatus.completed
    stored = domain_store.get(EntityKind.habit, record.created_result_ref or "")
    assert stored is not None
    assert stored["name"] == "Minum air putih"
    assert stored["frequency"] == "daily"
    assert stored["streak"] == 0


def test_schedule_without_time_waits_for_confirmation() -> None:
    service, _ = _build_service()

    record = service.detect_and_request_action(
        "jadwalkan rapat evaluasi",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )

    assert record is not None
    assert record.status == ActionStatus.requested


def test_small_talk_creates_nothing() -> None:
    service, _ = _build_service()

    assert (
        service.detect_and_request_action(
            "apa kabar?",
            "Kabar baik!",
            owner_id="user-1",
            conversation_id="conv-1",
        )
        is None
    )
    assert service.detect_and_request_action("   ", None, owner_id="user-1", conversation_id="c") is None
    assert service.list_conversation_actions("conv-1") == []


def test_rejection_then_second_decision_conflicts() -> None:
    service, _ = _build_service()
    record = service.detect_and_request_action(
        "catat ide proyek\nPakai FastAPI",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )
    assert record is not None
    assert record.status == ActionStatus.requested

    result = service.decide_action(record.id, owner_id="user-1", approved=False)

    assert result.success is False
    assert result.message == "Action rejected by user"
    with pytest.raises(ActionStateError):
        service.decide_action(record.id, owner_id="user-1", approved=True)
    assert service.lifecycle.get(record.id).status == ActionStatus.rejected


def test_decision_by_another_owner_is_not_found() -> None:
    service, _ = _build_service()
    record = service.detect_and_request_action(
        "buat tugas ringkasan bab 3",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )
    assert record is not None

    with pytest.raises(ActionNotFoundError):
        service.decide_action(record.id, owner_id="user-2", approved=True)
    with pytest.raises(ActionNotFoundError):
        service.decide_action("missing", owner_id="user-1", approved=True)
    assert service.lifecycle.get(record.id).status == ActionStatus.requested


def test_context_hints_feed_task_category() -> None:
    context_store = InMemoryContextStore()
    context_store.save_hints("user-1", recent_topics=["Statistika"])
    service, _ = _build_service(context_store)

    record = service.detect_and_request_action(
        "buat tugas latihan soal statistika",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )

    assert record is not None
    assert isinstance(record.parameters, TaskParameters)
    assert record.parameters.category == "Statistika"


def test_unavailable_context_does_not_block_detection() -> None:
    service, _ = _build_service(UnavailableContextStore())

    record = service.detect_and_request_action(
        "buat tugas latihan soal statistika",
        None,
        owner_id="user-1",
        conversation_id="conv-1",
    )

    assert record is not None
    assert isinstance(record.parameters, TaskParameters)
    assert record.parameters.category is None
