import json

import pytest

from vyapaar.constants import STORAGE_KEY
from vyapaar.domain import AppData, ExpenseStatus
from vyapaar.errors import CorruptStateError
from vyapaar.storage import DocumentStore, JsonFileStore, MemoryStore, default_document
from factories import make_expense


def test_load_without_document_returns_seed_and_saves_it():
    backend = MemoryStore()
    store = DocumentStore(backend)

    doc = store.load()

    assert len(doc.expenses) == 3
    assert len(doc.business_units) == 6
    assert len(doc.categories) == 8
    assert backend.writes == 1
    assert AppData.from_dict(json.loads(backend.get(STORAGE_KEY))) == doc


def test_seed_contents():
    doc = default_document()
    statuses = [e.status for e in doc.expenses]
    assert statuses.count(ExpenseStatus.APPROVED) == 1
    assert statuses.count(ExpenseStatus.PENDING_REVIEW) == 2
    assert "Other" in doc.categories


def test_save_then_load_returns_same_document():
    backend = MemoryStore()
    store = DocumentStore(backend)
    doc = AppData(expenses=(make_expense("x", amount=12.5),), business_units=("A",), categories=("B",))

    store.save(doc)

    assert store.load() == doc
    assert backend.writes == 1


def test_save_overwrites_unconditionally():
    backend = MemoryStore()
    store = DocumentStore(backend)
    store.save(AppData(business_units=("one",)))
    store.save(AppData(business_units=("two",)))

    assert store.load().business_units == ("two",)


def test_clear_removes_document():
    backend = MemoryStore()
    store = DocumentStore(backend)
    store.load()
    store.clear()

    assert backend.get(STORAGE_KEY) is None


def test_corrupt_document_strict_raises():
    backend = MemoryStore({STORAGE_KEY: "{not json"})
    store = DocumentStore(backend, strict=True)

    with pytest.raises(CorruptStateError):
        store.load()


def test_corrupt_document_falls_back_to_seed_and_keeps_copy():
    backend = MemoryStore({STORAGE_KEY: '{"expenses": 5}'})
    store = DocumentStore(backend)

    doc = store.load()

    assert doc == default_document()
    assert backend.get(STORAGE_KEY + ".corrupt") == '{"expenses": 5}'
    assert AppData.from_dict(json.loads(backend.get(STORAGE_KEY))) == doc


def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    JsonFileStore(path).set("k", "v")

    fresh = JsonFileStore(path)
    assert fresh.get("k") == "v"
    assert fresh.get("missing") is None

    fresh.delete("k")
    assert JsonFileStore(path).get("k") is None


def test_json_file_store_leaves_no_temp_files(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.set("a", "1")
    store.set("b", "2")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["store.json"]


def test_json_file_store_unreadable_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("garbage", encoding="utf-8")

    with pytest.raises(CorruptStateError):
        JsonFileStore(path).get("k")


def test_document_store_on_disk(tmp_path):
    store = DocumentStore(JsonFileStore(tmp_path / "data.json"))
    first = store.load()

    again = DocumentStore(JsonFileStore(tmp_path / "data.json")).load()
    assert again == first


def test_json_file_store_quarantine_moves_unreadable_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("garbage", encoding="utf-8")
    file_store = JsonFileStore(path)

    with pytest.raises(CorruptStateError):
        DocumentStore(file_store).load()

    moved = file_store.quarantine()

    assert moved.name == "store.json.corrupt"
    assert moved.read_text(encoding="utf-8") == "garbage"
    assert DocumentStore(file_store).load() == default_document()
