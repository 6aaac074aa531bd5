"""Tests for the job stores."""
import threading
from unittest.mock import MagicMock

from cashplan.db.job_store import InMemoryJobStore, MongoJobStore


class TestInMemoryJobStore:

    def test_create_and_get(self, store):
        job_id = store.create({"filename": "cash.csv", "data": [{"cash": 1.0}]})
        job = store.get(job_id)

        assert job["id"] == job_id
        assert job["status"] == "created"
        assert job["filename"] == "cash.csv"
        assert "created_at" in job

    def test_payload_cannot_override_id(self, store):
        job_id = store.create({"id": "mine"})
        assert job_id != "mine"
        assert store.get("mine") is None

    def test_ids_are_unique(self, store):
        ids = {store.create({}) for _ in range(50)}
        assert len(ids) == 50

    def test_update_merges(self, store):
        job_id = store.create({"filename": "a.csv"})
        updated = store.update(job_id, {"status": "ready", "diagnosis": {"metrics": {}}})

        assert updated["status"] == "ready"
        assert updated["filename"] == "a.csv"
        assert store.get(job_id)["diagnosis"] == {"metrics": {}}

    def test_update_unknown_job(self, store):
        assert store.update("missing", {"status": "ready"}) is None

    def test_returned_jobs_are_copies(self, store):
        job_id = store.create({"data": [{"cash": 1.0}]})
        store.get(job_id)["data"].append({"cash": 2.0})

        assert store.get(job_id)["data"] == [{"cash": 1.0}]

    def test_lock_is_reentrant(self, store):
        job_id = store.create({})
        with store.lock(job_id):
            with store.lock(job_id):
                store.update(job_id, {"status": "processing"})
        assert store.get(job_id)["status"] == "processing"

    def test_concurrent_updates_keep_every_key(self):
        store = InMemoryJobStore()
        job_id = store.create({})

        def worker(n):
            for i in range(20):
                store.update(job_id, {f"k{n}_{i}": i})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        job = store.get(job_id)
        assert sum(1 for k in job if k.startswith("k")) == 100


class TestMongoJobStore:

    def _store(self):
        db = MagicMock()
        return MongoJobStore(db=db), db.jobs

    def test_create_inserts_document(self):
        store, col = self._store()
        job_id = store.create({"filename": "x.csv"})

        inserted = col.insert_one.call_args[0][0]
        assert inserted["id"] == job_id
        assert inserted["filename"] == "x.csv"

    def test_get_hides_object_id(self):
        store, col = self._store()
        col.find_one.return_value = {"id": "j1", "status": "ready"}

        assert store.get("j1") == {"id": "j1", "status": "ready"}
        col.find_one.assert_called_once_with({"id": "j1"}, {"_id": 0})

    def test_update_sets_fields(self):
        store, col = self._store()
        col.update_one.return_value.matched_count = 1
        col.find_one.return_value = {"id": "j1", "status": "ready"}

        assert store.update("j1", {"status": "ready"}) == {"id": "j1", "status": "ready"}
        col.update_one.assert_called_once_with({"id": "j1"}, {"$set": {"status": "ready"}})

    def test_update_unknown_job(self):
        store, col = self._store()
        col.update_one.return_value.matched_count = 0

        assert store.update("missing", {"status": "ready"}) is None
        col.find_one.assert_not_called()
