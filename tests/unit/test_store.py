"""Unit tests for the document store."""

import json
from pathlib import Path

import pytest

from taskflow.config import Settings
from taskflow.database.kv import FileKeyValueStore
from taskflow.database.store import DEFAULT_DOCUMENT_KEY, DocumentStore, compute_hash
from taskflow.errors import StorageError, ValidationError
from taskflow.models import SCHEMA_VERSION, Document, Project, Tag, Task

from tests.fakes import MemoryKeyValueStore


def _task(task_id: str, title: str = "T", **kwargs: object) -> Task:
    return Task(id=task_id, title=title, created_at=1, updated_at=1, **kwargs)


def _sample_doc() -> Document:
    return Document(
        tasks=[_task("a", "Alpha", tag_ids=["t1"]), _task("b", "Beta"), _task("c", "Gamma")],
        projects=[Project(id="p1", name="Home", created_at=1, updated_at=1)],
        tags=[Tag(id="t1", name="errands", created_at=1)],
    )


@pytest.mark.asyncio
async def test_load_fresh_install_writes_empty_document(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    doc = await store.load()
    assert doc.tasks == [] and doc.projects == [] and doc.tags == []
    assert doc.version == SCHEMA_VERSION
    assert doc.last_sync is None and doc.sync_hash is None
    assert json.loads(kv.data[DEFAULT_DOCUMENT_KEY])["tasks"] == []


@pytest.mark.asyncio
async def test_load_corrupt_document_raises_and_keeps_data(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    kv.data[DEFAULT_DOCUMENT_KEY] = "{not json"
    with pytest.raises(StorageError):
        await store.load()
    assert kv.data[DEFAULT_DOCUMENT_KEY] == "{not json"


@pytest.mark.asyncio
async def test_load_unreadable_medium_raises(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    kv.fail_reads = True
    with pytest.raises(StorageError):
        await store.get_cached()


@pytest.mark.asyncio
async def test_get_cached_reads_medium_once(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    kv.data[DEFAULT_DOCUMENT_KEY] = json.dumps(_sample_doc().to_wire())
    first = await store.get_cached()
    kv.data[DEFAULT_DOCUMENT_KEY] = "garbage that would fail to parse"
    second = await store.get_cached()
    assert first is second
    assert [t.id for t in second.tasks] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_save_stamps_version_and_serializes_camel_case(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    doc = _sample_doc()
    doc.version = "0.0.1"
    await store.save(doc)

    payload = json.loads(kv.data[DEFAULT_DOCUMENT_KEY])
    assert payload["version"] == SCHEMA_VERSION
    task = payload["tasks"][0]
    assert task["tagIds"] == ["t1"]
    assert task["createdAt"] == 1
    assert "dueDate" not in task
    assert "lastSync" not in payload


@pytest.mark.asyncio
async def test_failed_save_leaves_cache_unchanged(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    await store.get_cached()
    kv.fail_writes = True

    with pytest.raises(StorageError):
        await store.save(_sample_doc())

    assert (await store.get_cached()).tasks == []


@pytest.mark.asyncio
async def test_export_snapshot_is_pretty_json(store: DocumentStore) -> None:
    await store.save(_sample_doc())
    text = await store.export_snapshot()
    assert text.startswith("{\n  ")
    assert json.loads(text)["projects"][0]["name"] == "Home"


@pytest.mark.asyncio
async def test_import_replaces_document(store: DocumentStore) -> None:
    await store.save(_sample_doc())
    payload = {
        "tasks": [{"id": "z", "title": "Imported", "tagIds": [], "completed": False,
                   "createdAt": 5, "updatedAt": 5}],
        "projects": [],
        "tags": [],
        "version": "0.9.0",
    }
    await store.import_snapshot(json.dumps(payload))

    doc = await store.get_cached()
    assert [t.id for t in doc.tasks] == ["z"]
    assert doc.projects == [] and doc.tags == []
    assert doc.version == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_import_missing_tags_fails_and_keeps_document(store: DocumentStore) -> None:
    await store.save(_sample_doc())
    before = await store.export_snapshot()

    with pytest.raises(ValidationError):
        await store.import_snapshot(json.dumps({"tasks": [], "projects": []}))

    assert await store.export_snapshot() == before


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text",
    ["not json", "[]", '{"tasks": [{"id": 1}], "projects": [], "tags": []}'],
)
async def test_import_rejects_malformed_payloads(store: DocumentStore, text: str) -> None:
    with pytest.raises(ValidationError):
        await store.import_from_text(text)


@pytest.mark.asyncio
async def test_clear_behaves_as_fresh_install(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    await store.save(_sample_doc())
    await store.clear()
    assert DEFAULT_DOCUMENT_KEY not in kv.data
    assert (await store.load()).tasks == []


def test_hash_ignores_collection_order() -> None:
    doc = _sample_doc()
    shuffled = doc.model_copy(deep=True)
    shuffled.tasks.reverse()
    assert compute_hash(doc) == compute_hash(shuffled)


def test_hash_ignores_sync_metadata() -> None:
    doc = _sample_doc()
    stamped = doc.model_copy(update={"last_sync": 99, "sync_hash": "x"})
    assert compute_hash(doc) == compute_hash(stamped)


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: setattr(d.tasks[1], "title", "Beta!"),
        lambda d: setattr(d.tasks[2], "completed", True),
        lambda d: setattr(d.tasks[0], "tag_ids", []),
        lambda d: setattr(d.projects[0], "archived", True),
        lambda d: setattr(d.tags[0], "color", "#ff0000"),
    ],
)
def test_hash_changes_on_any_field_change(mutate) -> None:
    doc = _sample_doc()
    changed = doc.model_copy(deep=True)
    mutate(changed)
    assert compute_hash(doc) != compute_hash(changed)


@pytest.mark.asyncio
async def test_update_sync_metadata_stamps_and_detects_conflict(
    store: DocumentStore,
) -> None:
    await store.save(_sample_doc())
    await store.update_sync_metadata()

    doc = await store.get_cached()
    assert doc.last_sync is not None
    assert doc.sync_hash == compute_hash(doc)

    metadata = await store.get_sync_metadata()
    assert metadata.last_sync_timestamp == doc.last_sync
    assert await store.detect_conflict(doc.sync_hash) is False
    assert await store.detect_conflict("other") is True


@pytest.mark.asyncio
async def test_write_export_file(store: DocumentStore, tmp_path) -> None:
    await store.save(_sample_doc())
    path = await store.write_export_file(tmp_path / "exports")
    assert path.name.startswith("taskflow-export-")
    assert json.loads(path.read_text(encoding="utf-8"))["tasks"][0]["id"] == "a"


@pytest.mark.asyncio
async def test_load_non_utf8_file_raises_storage_error(tmp_path: Path) -> None:
    """Undecodable bytes on disk are reported as corrupt data and left in place."""
    kv = FileKeyValueStore(tmp_path)
    path = kv.path_for(DEFAULT_DOCUMENT_KEY)
    raw = b'{"tasks": [\xff\xfe]}'
    path.write_bytes(raw)

    store = DocumentStore(kv)
    with pytest.raises(StorageError, match="corrupt"):
        await store.load()
    assert path.read_bytes() == raw


@pytest.mark.asyncio
async def test_default_key_matches_settings(
    store: DocumentStore, kv: MemoryKeyValueStore
) -> None:
    await store.load()
    assert list(kv.data) == [Settings.model_fields["document_key"].default]


def test_store_hash_method_matches_module_function(store: DocumentStore) -> None:
    doc = _sample_doc()
    assert store.compute_hash(doc) == compute_hash(doc)
    assert DocumentStore.compute_hash.__doc__
