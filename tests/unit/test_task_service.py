"""Unit tests for TaskService (views, lifecycle, inbox promotion)."""

from datetime import datetime

import pytest

from taskflow.core.date_parser import start_of_day_ms
from taskflow.core.services.tasks import DAY_MS, TaskService, promote_from_inbox
from taskflow.errors import NotFoundError, StorageError, ValidationError
from taskflow.utils.ids import now_ms

from tests.fakes import MemoryKeyValueStore

NOW = datetime(2026, 3, 10, 12, 0)
HOUR_MS = 60 * 60 * 1000


@pytest.mark.asyncio
async def test_create_defaults(tasks: TaskService) -> None:
    """create assigns id/timestamps and defaults to an open inbox task."""
    task = await tasks.create("  Write report  ")
    assert task.id
    assert task.title == "Write report"
    assert task.status == "inbox"
    assert task.tag_ids == []
    assert task.completed is False and task.completed_at is None
    assert task.created_at == task.updated_at
    assert [t.id for t in await tasks.all()] == [task.id]


@pytest.mark.asyncio
async def test_create_rejects_blank_title(tasks: TaskService) -> None:
    with pytest.raises(ValidationError):
        await tasks.create("   ")
    assert await tasks.all() == []


@pytest.mark.asyncio
async def test_create_rejects_unknown_and_invalid_fields(tasks: TaskService) -> None:
    with pytest.raises(ValidationError):
        await tasks.create("Task", colour="red")
    with pytest.raises(ValidationError):
        await tasks.create("Task", priority="urgent")


@pytest.mark.asyncio
async def test_create_collapses_duplicate_tag_ids(tasks: TaskService) -> None:
    task = await tasks.create("Task", tag_ids=["a", "b", "a"])
    assert task.tag_ids == ["a", "b"]


@pytest.mark.asyncio
async def test_complete_uncomplete_round_trip(tasks: TaskService) -> None:
    task = await tasks.create("Pay rent")
    before = now_ms()

    done = await tasks.complete(task.id)
    assert done.completed is True
    assert done.completed_at is not None and done.completed_at >= before

    reopened = await tasks.uncomplete(task.id)
    assert reopened.completed is False
    assert reopened.completed_at is None


@pytest.mark.asyncio
async def test_generic_update_keeps_completion_fields_together(tasks: TaskService) -> None:
    task = await tasks.create("Pay rent")

    done = await tasks.update(task.id, completed=True)
    assert done.completed_at is not None

    reopened = await tasks.update(task.id, completed_at=None)
    assert reopened.completed is False


@pytest.mark.asyncio
async def test_update_due_date_promotes_inbox_task(tasks: TaskService) -> None:
    task = await tasks.create("Call plumber")
    updated = await tasks.update(task.id, due_date=now_ms() + DAY_MS)
    assert updated.status == "next"
    assert updated.status != "inbox"


@pytest.mark.asyncio
async def test_update_explicit_status_wins_over_default(tasks: TaskService) -> None:
    task = await tasks.create("Wait for invoice")
    updated = await tasks.update(task.id, due_date=now_ms(), status="waiting")
    assert updated.status == "waiting"


@pytest.mark.asyncio
async def test_update_other_fields_keeps_inbox(tasks: TaskService) -> None:
    task = await tasks.create("Sketch idea")
    updated = await tasks.update(task.id, description="rough notes", priority="low")
    assert updated.status == "inbox"
    assert updated.updated_at >= task.updated_at


@pytest.mark.asyncio
async def test_promoted_task_status_is_not_changed_by_later_edits(tasks: TaskService) -> None:
    task = await tasks.create("Learn piano", status="someday")
    updated = await tasks.update(task.id, due_date=now_ms())
    assert updated.status == "someday"


def test_promote_from_inbox_transition() -> None:
    assert promote_from_inbox("inbox", {"due_date": 1}) == "next"
    assert promote_from_inbox("inbox", {"due_date": 1, "status": "inbox"}) == "next"
    assert promote_from_inbox("inbox", {"status": "someday"}) == "someday"
    assert promote_from_inbox("inbox", {"title": "x"}) == "inbox"
    assert promote_from_inbox("inbox", {"due_date": None}) == "inbox"
    assert promote_from_inbox("waiting", {"due_date": 1}) == "waiting"
    assert promote_from_inbox("waiting", {"status": "next"}) == "next"


@pytest.mark.asyncio
async def test_update_missing_task_raises(tasks: TaskService) -> None:
    with pytest.raises(NotFoundError):
        await tasks.update("nope", title="x")


@pytest.mark.asyncio
async def test_update_rejects_blank_title(tasks: TaskService) -> None:
    task = await tasks.create("Keep me")
    with pytest.raises(ValidationError):
        await tasks.update(task.id, title="")
    assert (await tasks.get(task.id)).title == "Keep me"


@pytest.mark.asyncio
async def test_update_cannot_change_id(tasks: TaskService) -> None:
    task = await tasks.create("Stable")
    with pytest.raises(ValidationError):
        await tasks.update(task.id, id="other")


@pytest.mark.asyncio
async def test_delete_is_idempotent(tasks: TaskService) -> None:
    task = await tasks.create("Temp")
    await tasks.delete(task.id)
    await tasks.delete(task.id)
    assert await tasks.all() == []


@pytest.mark.asyncio
async def test_storage_failure_propagates_and_leaves_cache(
    tasks: TaskService, kv: MemoryKeyValueStore
) -> None:
    await tasks.create("Existing")
    kv.fail_writes = True
    with pytest.raises(StorageError):
        await tasks.create("Lost")
    assert [t.title for t in await tasks.all()] == ["Existing"]


@pytest.mark.asyncio
async def test_inbox_view(tasks: TaskService) -> None:
    plain = await tasks.create("Plain")
    await tasks.create("Scheduled", due_date=now_ms())
    done = await tasks.create("Done")
    await tasks.complete(done.id)
    await tasks.create("Waiting", status="waiting")

    assert [t.id for t in await tasks.inbox()] == [plain.id]


@pytest.mark.asyncio
async def test_temporal_views(tasks: TaskService) -> None:
    midnight = start_of_day_ms(NOW)
    yesterday = await tasks.create("Yesterday", due_date=midnight - HOUR_MS)
    today = await tasks.create("Today", due_date=midnight)
    late_today = await tasks.create("Late today", due_date=midnight + DAY_MS - 1)
    tomorrow = await tasks.create("Tomorrow", due_date=start_of_day_ms(NOW, 1))
    later = await tasks.create("Later", due_date=start_of_day_ms(NOW, 2))
    finished = await tasks.create("Finished", due_date=midnight + HOUR_MS)
    await tasks.complete(finished.id)

    assert {t.id for t in await tasks.today(NOW)} == {today.id, late_today.id}
    assert [t.id for t in await tasks.tomorrow(NOW)] == [tomorrow.id]
    assert [t.id for t in await tasks.overdue(NOW)] == [yesterday.id]
    assert later.id not in {t.id for t in await tasks.today(NOW)}


@pytest.mark.asyncio
async def test_by_status_project_and_tag(tasks: TaskService) -> None:
    a = await tasks.create("A", status="waiting", project_id="p1", tag_ids=["t1"])
    b = await tasks.create("B", status="waiting")
    await tasks.complete(b.id)

    assert [t.id for t in await tasks.by_status("waiting")] == [a.id]
    assert [t.id for t in await tasks.by_project("p1")] == [a.id]
    assert [t.id for t in await tasks.by_tag("t1")] == [a.id]


@pytest.mark.asyncio
async def test_completed_sorted_most_recent_first(tasks: TaskService) -> None:
    first = await tasks.create("First")
    second = await tasks.create("Second")
    await tasks.update(first.id, completed=True, completed_at=1_000)
    await tasks.update(second.id, completed=True, completed_at=2_000)

    assert [t.id for t in await tasks.completed()] == [second.id, first.id]


@pytest.mark.asyncio
async def test_archive_older_than(tasks: TaskService) -> None:
    now = now_ms()
    old = await tasks.create("Old")
    recent = await tasks.create("Recent")
    open_task = await tasks.create("Open")
    await tasks.update(old.id, completed=True, completed_at=now - 31 * DAY_MS)
    await tasks.update(recent.id, completed=True, completed_at=now - DAY_MS)

    removed = await tasks.archive_older_than(30, now=now)

    assert removed == 1
    assert {t.id for t in await tasks.all()} == {recent.id, open_task.id}


@pytest.mark.asyncio
async def test_archive_keeps_completed_tasks_without_timestamp(
    store, tasks: TaskService
) -> None:
    task = await tasks.create("Legacy")
    doc = await store.get_copy()
    doc.tasks[0] = doc.tasks[0].model_copy(update={"completed": True, "completed_at": None})
    await store.save(doc)

    assert await tasks.archive_older_than(0, now=now_ms() + DAY_MS) == 0
    assert (await tasks.get(task.id)) is not None


@pytest.mark.asyncio
async def test_create_from_title_extracts_due_date(tasks: TaskService) -> None:
    task = await tasks.create_from_title("Buy milk tomorrow")
    assert task.title == "Buy milk"
    assert task.due_date is not None
    assert task.status == "inbox"
    assert task not in await tasks.inbox()


@pytest.mark.asyncio
async def test_move(tasks: TaskService) -> None:
    task = await tasks.create("Someday maybe")
    moved = await tasks.move(task.id, "someday")
    assert moved.status == "someday"


@pytest.mark.asyncio
async def test_returned_tasks_are_detached_from_store(tasks: TaskService) -> None:
    """Mutating a returned task does not leak into the stored document."""
    created = await tasks.create("Original", tag_ids=["t1"])
    created.tag_ids.append("t2")

    fetched = await tasks.get(created.id)
    assert fetched is not None
    fetched.title = "Changed"
    fetched.tag_ids.append("t3")
    listed = await tasks.all()
    listed[0].tag_ids.clear()

    stored = await tasks.get(created.id)
    assert stored.title == "Original"
    assert stored.tag_ids == ["t1"]
