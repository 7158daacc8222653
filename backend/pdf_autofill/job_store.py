"""
Job table for bulk generation.

The orchestrator only talks to the JobStore interface; the default store keeps
jobs in process memory and forgets them after a time-to-live, which is also
what removes jobs whose output was never downloaded.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from cachetools import TTLCache

from .models import Job

logger = logging.getLogger(__name__)


class JobStore(ABC):
    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    def set(self, job: Job) -> None:
        ...

    @abstractmethod
    def delete(self, job_id: str) -> None:
        ...


class InMemoryJobStore(JobStore):
    def __init__(self, ttl_seconds: float = 1800, maxsize: int = 1000):
        self._jobs: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._lock = threading.Lock()

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def set(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
