"""
Tests for storage backends and transaction support
"""

import pytest
from datetime import datetime, timezone

from credit_module.storage import (
    InMemoryStorage, SQLiteStorage, StorageInterface, create_storage
)


# Test data
test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "test.db")
    yield backend
    backend.close()


class TestStorageBackends:
    """Behaviour shared by every backend"""

    def test_basic_operations(self, storage):
        storage.save("test_table", "record_1", test_data)
        loaded = storage.load("test_table", "record_1")
        assert loaded == test_data

        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")

        storage.save("test_table", "record_2", {"id": "record_2", "name": "Other"})
        assert len(storage.load_all("test_table")) == 2
        assert storage.count("test_table") == 2

        assert storage.delete("test_table", "record_1")
        assert not storage.delete("test_table", "record_1")
        assert storage.load("test_table", "record_1") is None

    def test_find(self, storage):
        storage.save("loans", "a", {"id": "a", "customer_id": "c1", "is_paid": False})
        storage.save("loans", "b", {"id": "b", "customer_id": "c2", "is_paid": False})
        storage.save("loans", "c", {"id": "c", "customer_id": "c1", "is_paid": True})

        found = storage.find("loans", {"customer_id": "c1"})
        assert {r["id"] for r in found} == {"a", "c"}

        found = storage.find("loans", {"customer_id": "c1", "is_paid": False})
        assert [r["id"] for r in found] == ["a"]

    def test_update_replaces_record(self, storage):
        storage.save("test_table", "record_1", test_data)
        storage.save("test_table", "record_1", {**test_data, "name": "Updated"})

        assert storage.count("test_table") == 1
        assert storage.load("test_table", "record_1")["name"] == "Updated"

    def test_clear_table(self, storage):
        storage.save("test_table", "record_1", test_data)
        storage.clear_table("test_table")
        assert storage.count("test_table") == 0

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("test_table", "record_1", test_data)
            storage.save("test_table", "record_2", {"id": "record_2"})

        assert storage.count("test_table") == 2

    def test_atomic_rollback(self, storage):
        storage.save("test_table", "existing", {"id": "existing", "value": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "existing", {"id": "existing", "value": 2})
                storage.save("test_table", "new", {"id": "new"})
                raise RuntimeError("boom")

        assert storage.load("test_table", "existing")["value"] == 1
        assert not storage.exists("test_table", "new")

    def test_rollback_count(self, storage):
        assert storage.rollback_count == 0

        with storage.atomic():
            storage.save("test_table", "kept", {"id": "kept"})
        assert storage.rollback_count == 0

        with pytest.raises(RuntimeError):
            with storage.atomic():
                raise RuntimeError("boom")
        assert storage.rollback_count == 1

    def test_nested_atomic_rolls_back_outer(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "outer", {"id": "outer"})
                with storage.atomic():
                    storage.save("test_table", "inner", {"id": "inner"})
                raise RuntimeError("boom")

        assert storage.count("test_table") == 0


class TestInMemoryStorage:
    """InMemoryStorage specifics"""

    def test_records_are_copied(self):
        storage = InMemoryStorage()
        data = {"id": "r1", "items": [1, 2]}
        storage.save("t", "r1", data)

        data["items"].append(3)
        loaded = storage.load("t", "r1")
        loaded["items"].append(4)

        assert storage.load("t", "r1")["items"] == [1, 2]

    def test_get_all_data(self):
        storage = InMemoryStorage()
        storage.save("t", "r1", {"id": "r1"})
        assert storage.get_all_data() == {"t": {"r1": {"id": "r1"}}}


class TestSQLiteStorage:
    """SQLiteStorage specifics"""

    def test_persistence_across_connections(self, tmp_path):
        db_path = tmp_path / "persist.db"

        storage = SQLiteStorage(db_path)
        storage.save("test_table", "record_1", test_data)
        storage.close()

        storage = SQLiteStorage(db_path)
        assert storage.load("test_table", "record_1") == test_data
        storage.close()

    def test_load_all_ordered_by_created_at(self):
        storage = SQLiteStorage()
        storage.save("t", "late", {"id": "late", "created_at": "2024-02-01T00:00:00+00:00"})
        storage.save("t", "early", {"id": "early", "created_at": "2024-01-01T00:00:00+00:00"})

        assert [r["id"] for r in storage.load_all("t")] == ["early", "late"]
        storage.close()


class TestCreateStorage:
    """Test the database URL factory"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_memory_url(self):
        storage = create_storage("sqlite:///:memory:")
        assert isinstance(storage, SQLiteStorage)
        assert storage.db_path == ":memory:"
        storage.close()

    def test_sqlite_file_url(self, tmp_path):
        path = tmp_path / "credit.db"
        storage = create_storage(f"sqlite:///{path}")
        assert isinstance(storage, StorageInterface)
        assert storage.db_path == str(path)
        storage.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/credit")
