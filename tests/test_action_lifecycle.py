from threading import Barrier, Thread

import pytest

from app.services.action_lifecycle import ActionLifecycleManager
from app.services.action_models import (
    ActionIntent,
    ActionKind,
    ActionNotFoundError,
    ActionStateError,
    ActionStatus,
    ActionValidationError,
    EntityKind,
    ExecutionResult,
    NoteParameters,
    TaskParameters,
)
from app.services.action_record_store import InMemoryActionRecordStore


def _task_intent(title: str = "Laporan Keuangan") -> ActionIntent:
    return ActionIntent(
        kind=ActionKind.create_task,
        target_entity=EntityKind.task,
        parameters=TaskParameters(title=title),
        source_message=f"buat tugas {title}",
    )


def _manager(pending_limit: int = 10) -> ActionLifecycleManager:
    return ActionLifecycleManager(InMemoryActionRecordStore(), pending_limit=pending_limit)


def test_create_persists_requested_record() -> None:
    manager = _manager()

    record = manager.create(_task_intent(), owner_id="user-1", conversation_id="conv-1")

    assert record.id
    assert record.status == ActionStatus.requested
    assert record.created_result_ref is None
    assert manager.get(record.id) == record


def test_create_rejects_mismatched_target_entity() -> None:
    manager = _manager()
    intent = ActionIntent(
        kind=ActionKind.create_task,
        target_entity=EntityKind.note,
        parameters=NoteParameters(title="Ide", content="isi"),
        source_message="catat ide",
    )

    with pytest.raises(ActionValidationError):
        manager.create(intent, owner_id="user-1", conversation_id="conv-1")


def test_completion_sets_created_result_ref() -> None:
    manager = _manager()
    record = manager.create(_task_intent(), owner_id="user-1", conversation_id="conv-1")

    manager.transition(record.id, ActionStatus.approved)
    completed = manager.transition(
        record.id,
        ActionStatus.completed,
        ExecutionResult(success=True, message="Task created successfully", data={"id": "task-9"}),
    )

    assert completed.status == ActionStatus.completed
    assert completed.created_result_ref == "task-9"
    assert completed.execution_result is not None
    assert completed.execution_result.success is True


def test_failure_keeps_created_result_ref_empty() -> None:
    manager = _manager()
    record = manager.create(_task_intent(), owner_id="user-1", conversation_id="conv-1")
    manager.transition(record.id, ActionStatus.approved)

    failed = manager.transition(
        record.id,
        ActionStatus.failed,
        ExecutionResult(success=False, message="Failed to create task: boom"),
    )

    assert failed.status == ActionStatus.failed
    assert failed.created_result_ref is None


def test_invalid_edges_raise_state_error() -> None:
    manager = _manager()
    record = manager.create(_task_intent(), owner_id="user-1", conversation_id="conv-1")

    with pytest.raises(ActionStateError):
        manager.transition(record.id, ActionStatus.completed)

    manager.transition(record.id, ActionStatus.rejected)
    for target in ActionStatus:
        with pytest.raises(ActionStateError):
            manager.transition(record.id, target)

    assert manager.get(record.id).status == ActionStatus.rejected


def test_unknown_action_raises_not_found() -> None:
    manager = _manager()

    with pytest.raises(ActionNotFoundError):
        manager.get("missing")
    with pytest.raises(ActionNotFoundError):
        manager.transition("missing", ActionStatus.approved)


def test_concurrent_transitions_only_one_wins() -> None:
    manager = _manager()
    record = manager.create(_task_intent(), owner_id="user-1", conversation_id="conv-1")
    barrier = Barrier(2)
    outcomes: list[str] = []

    def decide(target: ActionStatus) -> None:
        barrier.wait()
        try:
            manager.transition(record.id, target)
            outcomes.append("ok")
        except ActionStateError:
            outcomes.append("conflict")

    threads = [
        Thread(target=decide, args=(ActionStatus.approved,)),
        Thread(target=decide, args=(ActionStatus.rejected,)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    assert manager.get(record.id).status in {ActionStatus.approved, ActionStatus.rejected}


def test_list_pending_is_newest_first_and_capped() -> None:
    manager = _manager(pending_limit=3)
    created = [
        manager.create(_task_intent(f"Tugas {index}"), owner_id="user-1", conversation_id="conv-1")
        for index in range(5)
    ]
    manager.create(_task_intent("Milik orang lain"), owner_id="user-2", conversation_id="conv-2")
    manager.transition(created[4].id, ActionStatus.rejected)

    pending = manager.list_pending("user-1")

    assert [record.id for record in pending] == [created[3].id, created[2].id, created[1].id]


def test_list_for_conversation_returns_every_status() -> None:
    manager = _manager()
    first = manager.create(_task_intent("Satu"), owner_id="user-1", conversation_id="conv-1")
    second = manager.create(_task_intent("Dua"), owner_id="user-1", conversation_id="conv-1")
    manager.create(_task_intent("Tiga"), owner_id="user-1", conversation_id="conv-2")
    manager.transition(first.id, ActionStatus.rejected)

    records = manager.list_for_conversation("conv-1")

    assert [record.id for record in records] == [second.id, first.id]
    assert records[1].status == ActionStatus.rejected
