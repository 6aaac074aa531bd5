# cashplan/db/job_store.py

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Iterator, Optional
import copy
import logging
import threading

import shortuuid

from cashplan import config

logger = logging.getLogger("cashplan.jobs")


class _LockRegistry:
    """One re-entrant lock per job id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def get(self, job_id: str) -> threading.RLock:
        with self._guard:
            lk = self._locks.get(job_id)
            if lk is None:
                lk = threading.RLock()
                self._locks[job_id] = lk
            return lk

    def __contains__(self, job_id: str) -> bool:
        with self._guard:
            return job_id in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class JobStore:
    """
    Key-value store for analysis jobs.

    A job is a dict: id, status, filename, created_at, data and, as stages
    complete, diagnosis / forecast / recommendations / lastExecution.
    Mutations of one job are serialized with lock(job_id).
    """

    def __init__(self):
        self._locks = _LockRegistry()

    @contextmanager
    def lock(self, job_id: str) -> Iterator[None]:
        with self._locks.get(job_id):
            yield

    def create(self, payload: Dict[str, Any]) -> str:
        job_id = shortuuid.uuid()
        job = {
            "id": job_id,
            "status": "created",
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        job.update(payload)
        job["id"] = job_id
        self._insert(job_id, job)
        logger.info("Created job %s", job_id)
        return job_id

    def update(self, job_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self.lock(job_id):
            return self._update(job_id, patch)

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _insert(self, job_id: str, job: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _update(self, job_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    """Process-lifetime store. Jobs are never evicted."""

    def __init__(self):
        super().__init__()
        self._jobs: Dict[str, Dict[str, Any]] = {}

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        job = self._jobs.get(job_id)
        return copy.deepcopy(job) if job is not None else None

    def _insert(self, job_id: str, job: Dict[str, Any]) -> None:
        self._jobs[job_id] = copy.deepcopy(job)

    def _update(self, job_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if job_id not in self._jobs:
            return None
        merged = dict(self._jobs[job_id])
        merged.update(copy.deepcopy(patch))
        self._jobs[job_id] = merged
        return copy.deepcopy(merged)


class MongoJobStore(JobStore):
    def __init__(self, db=None):
        super().__init__()
        if db is None:
            from cashplan.db.mongo import get_db
            db = get_db()
        self._col = db.jobs

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self._col.find_one({"id": job_id}, {"_id": 0})

    def _insert(self, job_id: str, job: Dict[str, Any]) -> None:
        # insert_one adds _id to the dict it is given
        self._col.insert_one(dict(job))

    def _update(self, job_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        res = self._col.update_one({"id": job_id}, {"$set": patch})
        if res.matched_count == 0:
            return None
        return self.get(job_id)


@lru_cache(maxsize=1)
def get_job_store() -> JobStore:
    """Configured store, built once. Used as a FastAPI dependency."""
    backend = config.JOB_STORE_BACKEND
    if backend == "mongo":
        logger.info("Using MongoDB job store (%s)", config.MONGO_DB)
        return MongoJobStore()
    if backend != "memory":
        logger.warning("Unknown JOB_STORE_BACKEND=%r, falling back to memory", backend)
    return InMemoryJobStore()
