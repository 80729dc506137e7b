"""End-to-end "enhance one video" operation.

A run moves RECEIVED -> VALIDATED -> TRANSCODING -> SCORED -> RECORDED.
Bad input ends in REJECTED before anything touches the disk; a filesystem
problem that even the fallback copy cannot get around ends in FAILED.
Transcoder failures are not failures here: the executor returns the
original video and the job is recorded with ORIGINAL_RETURNED status.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from django.db import models

from .errors import EnhancementError, IntakeRejected, ServiceBusy, StorageFailure
from .filters import build_filter_chain, parse_enhancements
from .ledger import JobLedger
from .models import EnhancementJob, JobStatus, QualityTier
from .storage import ArtifactStore
from .transcode import Transcoder
from .utils import new_job_id, size_in_mb

logger = logging.getLogger(__name__)


class PipelineState(models.TextChoices):
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    TRANSCODING = "TRANSCODING"
    SCORED = "SCORED"
    RECORDED = "RECORDED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PipelineOutcome:
    state: str
    job: Optional[EnhancementJob] = None
    error: Optional[EnhancementError] = None

    @property
    def ok(self) -> bool:
        return self.state == PipelineState.RECORDED

    @property
    def reason(self) -> str:
        return str(self.error) if self.error else ""


class EnhancementPipeline:
    def __init__(
        self,
        store: ArtifactStore,
        ledger: JobLedger,
        transcoder: Transcoder,
        reporter,
        *,
        max_concurrent: int = 2,
        queue_timeout: Optional[float] = 0,
        max_upload_bytes: Optional[int] = None,
        id_factory: Callable[[], str] = new_job_id,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.store = store
        self.ledger = ledger
        self.transcoder = transcoder
        self.reporter = reporter
        self.queue_timeout = queue_timeout
        self.max_upload_bytes = max_upload_bytes
        self.id_factory = id_factory
        self._slots = threading.BoundedSemaphore(max_concurrent)

    # -- stages ------------------------------------------------------------

    def validate(self, upload, quality_tier) -> None:
        if upload is None:
            raise IntakeRejected("No file")
        if self.max_upload_bytes is not None and (upload.size or 0) > self.max_upload_bytes:
            raise IntakeRejected(
                f"File is {size_in_mb(upload.size)} MB; the limit is {size_in_mb(self.max_upload_bytes)} MB"
            )
        if quality_tier not in QualityTier.values:
            raise IntakeRejected(
                f"Unsupported quality {quality_tier!r}. Allowed: {', '.join(QualityTier.values)}"
            )

    def _acquire_slot(self) -> None:
        if self.queue_timeout is None:
            acquired = self._slots.acquire()
        elif self.queue_timeout <= 0:
            acquired = self._slots.acquire(blocking=False)
        else:
            acquired = self._slots.acquire(timeout=self.queue_timeout)
        if not acquired:
            raise ServiceBusy("All transcode slots are busy, try again shortly")

    def _process(self, upload, quality_tier: str, enhancements: tuple[str, ...]) -> EnhancementJob:
        staged = self.store.stage(upload)
        try:
            state = PipelineState.TRANSCODING
            logger.debug("%s: %s -> %s", upload.name, PipelineState.VALIDATED, state)
            chain = build_filter_chain(quality_tier, enhancements)
            output_name, output_path = self.store.allocate_output()
            outcome = self.transcoder.execute(staged, output_path, chain)

            logger.debug("%s: %s -> %s", upload.name, state, PipelineState.SCORED)
            size_mb = size_in_mb(upload.size)
            report = self.reporter.synthesize(
                upload.name, size_mb, quality_tier, enhancements, fallback=outcome.used_fallback
            )
            job = EnhancementJob(
                id=self.id_factory(),
                source_name=upload.name,
                source_size_mb=size_mb,
                quality_tier=quality_tier,
                enhancements=enhancements,
                output_artifact=output_name,
                status=JobStatus.ORIGINAL_RETURNED if outcome.used_fallback else JobStatus.ENHANCED,
                report=report.text,
                stats=report.stats,
            )
            return self.ledger.append(job)
        finally:
            self.store.discard_staged(staged)

    # -- entry points ------------------------------------------------------

    def run(self, upload, quality_tier, enhancements: Iterable[str] | str | None = None) -> PipelineOutcome:
        """Process one upload synchronously and report where it ended up."""
        try:
            self.validate(upload, quality_tier)
        except IntakeRejected as exc:
            logger.info("Rejected upload: %s", exc)
            return PipelineOutcome(PipelineState.REJECTED, error=exc)
        toggles = parse_enhancements(enhancements)
        logger.debug("%s: %s -> %s", upload.name, PipelineState.RECEIVED, PipelineState.VALIDATED)

        try:
            self._acquire_slot()
        except ServiceBusy as exc:
            logger.warning("Rejected %s: %s", upload.name, exc)
            return PipelineOutcome(PipelineState.REJECTED, error=exc)

        try:
            job = self._process(upload, quality_tier, toggles)
        except StorageFailure as exc:
            logger.error("Enhancement of %s failed", upload.name, exc_info=True)
            return PipelineOutcome(PipelineState.FAILED, error=exc)
        finally:
            self._slots.release()

        logger.info(
            "Recorded job %s: %s -> %s (%s)", job.id, job.source_name, job.output_artifact, job.status
        )
        return PipelineOutcome(PipelineState.RECORDED, job=job)

    def enhance(self, upload, quality_tier, enhancements=None) -> EnhancementJob:
        """Like ``run`` but returns the job or raises the error that stopped it."""
        outcome = self.run(upload, quality_tier, enhancements)
        if not outcome.ok:
            raise outcome.error
        return outcome.job
