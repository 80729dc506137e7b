from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db import models


class QualityTier(models.TextChoices):
    FHD = "1080p"
    UHD_4K = "4K"
    UHD_8K = "8K"


class Enhancement(models.TextChoices):
    NOISE_REDUCTION = "NoiseReduction"
    STABILIZATION = "Stabilization"
    COLOR_GRADE = "ColorGrade"
    SHARPENING = "Sharpening"


class JobStatus(models.TextChoices):
    ENHANCED = "ENHANCED"
    ORIGINAL_RETURNED = "ORIGINAL_RETURNED"  # transcoder failed, source copied verbatim


@dataclass(frozen=True)
class Stat:
    value: str
    label: str


@dataclass(frozen=True)
class EnhancementJob:
    """A completed enhancement request. Immutable once it is in the ledger."""

    id: str
    source_name: str
    source_size_mb: float
    quality_tier: str
    enhancements: tuple[str, ...]
    output_artifact: str
    status: str
    report: str
    stats: tuple[Stat, ...]
    created_at: Optional[datetime] = None

    @property
    def used_fallback(self) -> bool:
        return self.status == JobStatus.ORIGINAL_RETURNED
