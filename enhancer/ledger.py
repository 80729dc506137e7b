import abc
import dataclasses
import logging
import threading
from typing import Optional

from django.utils import timezone

from .models import EnhancementJob
from .storage import ArtifactStore

logger = logging.getLogger(__name__)


class JobLedger(abc.ABC):
    """Append-only record of completed enhancement jobs."""

    @abc.abstractmethod
    def append(self, job: EnhancementJob) -> EnhancementJob:
        """Record a job and return it as stored (with ``created_at`` set)."""

    @abc.abstractmethod
    def list(self) -> tuple[EnhancementJob, ...]:
        ...

    @abc.abstractmethod
    def get(self, job_id: str) -> Optional[EnhancementJob]:
        ...

    @abc.abstractmethod
    def clear(self) -> int:
        """Forget every job and delete every artifact. Returns the number of jobs removed."""


class InMemoryJobLedger(JobLedger):
    """Process-local ledger. Jobs and their artifacts come and go together.

    ``append`` finalizes the artifact and ``clear`` purges the store while
    holding the ledger lock, so a clear can never interleave with an append.
    Lock order is ledger, then store.
    """

    def __init__(self, store: ArtifactStore):
        self.store = store
        self._jobs: list[EnhancementJob] = []
        self._by_id: dict[str, EnhancementJob] = {}
        self._lock = threading.Lock()

    def append(self, job: EnhancementJob) -> EnhancementJob:
        with self._lock:
            if job.id in self._by_id:
                raise ValueError(f"Job {job.id} is already recorded")
            self.store.finalize(job.output_artifact)
            job = dataclasses.replace(job, created_at=timezone.now())
            self._jobs.append(job)
            self._by_id[job.id] = job
        return job

    def list(self) -> tuple[EnhancementJob, ...]:
        with self._lock:
            return tuple(self._jobs)

    def get(self, job_id: str) -> Optional[EnhancementJob]:
        with self._lock:
            return self._by_id.get(job_id)

    def clear(self) -> int:
        with self._lock:
            # Purge first: if it fails the jobs stay listed with whatever files survived.
            self.store.purge()
            count = len(self._jobs)
            self._jobs.clear()
            self._by_id.clear()
        logger.info("Cleared %d job(s) from the ledger", count)
        return count

    def __len__(self):
        with self._lock:
            return len(self._jobs)
