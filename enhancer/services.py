import functools

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils.module_loading import import_string

from .ledger import InMemoryJobLedger
from .pipeline import EnhancementPipeline
from .storage import ArtifactStore
from .transcode import Transcoder

_PIPELINE_SETTINGS = {
    "UPLOAD_ROOT",
    "ENHANCED_ROOT",
    "FFMPEG_BIN",
    "TRANSCODE_TIMEOUT_SECONDS",
    "MAX_CONCURRENT_TRANSCODES",
    "TRANSCODE_QUEUE_TIMEOUT_SECONDS",
    "MAX_UPLOAD_BYTES",
    "REPORT_SYNTHESIZER",
}


def _positive(name: str):
    value = getattr(settings, name)
    if value is None or value <= 0:
        raise ImproperlyConfigured(f"{name} must be > 0, got {value!r}")
    return value


@functools.lru_cache(maxsize=None)
def get_pipeline() -> EnhancementPipeline:
    """The process-wide pipeline, built from settings on first use."""
    store = ArtifactStore(settings.UPLOAD_ROOT, settings.ENHANCED_ROOT)
    reporter_cls = import_string(settings.REPORT_SYNTHESIZER)
    return EnhancementPipeline(
        store=store,
        ledger=InMemoryJobLedger(store),
        transcoder=Transcoder(settings.FFMPEG_BIN, timeout=_positive("TRANSCODE_TIMEOUT_SECONDS")),
        reporter=reporter_cls(),
        max_concurrent=_positive("MAX_CONCURRENT_TRANSCODES"),
        queue_timeout=settings.TRANSCODE_QUEUE_TIMEOUT_SECONDS,
        max_upload_bytes=_positive("MAX_UPLOAD_BYTES"),
    )


@receiver(setting_changed)
def _reset_pipeline(*, setting, **kwargs):
    if setting in _PIPELINE_SETTINGS:
        get_pipeline.cache_clear()
