"""Human-readable job summaries.

The numbers produced here are presentation placeholders, not measurements.
Point ``settings.REPORT_SYNTHESIZER`` at another class with the same
``synthesize`` signature to plug in a real quality-assessment engine.
"""

from dataclasses import dataclass
from typing import Sequence

from .filters import applied_enhancements
from .models import QualityTier, Stat

# Rough seconds of processing per MB of source, by tier
_SECONDS_PER_MB = {
    QualityTier.FHD: 0.8,
    QualityTier.UHD_4K: 2.5,
    QualityTier.UHD_8K: 7.0,
}
_BASE_IMPROVEMENT = {
    QualityTier.FHD: 12,
    QualityTier.UHD_4K: 24,
    QualityTier.UHD_8K: 36,
}
_IMPROVEMENT_PER_STAGE = 6


@dataclass(frozen=True)
class Report:
    text: str
    stats: tuple[Stat, ...]


class HeuristicReportSynthesizer:
    def synthesize(
        self,
        name: str,
        size_mb: float,
        quality_tier: str,
        enhancements: Sequence[str],
        *,
        fallback: bool = False,
    ) -> Report:
        applied = applied_enhancements(enhancements)
        seconds = max(1.0, size_mb * _SECONDS_PER_MB[QualityTier(quality_tier)] * (1 + 0.25 * len(applied)))

        if fallback:
            text = (
                f'Enhancement unavailable for "{name}": the original video was returned '
                f"unchanged instead of a {quality_tier} render with "
                f"{len(applied)} enhancement model{'' if len(applied) == 1 else 's'}."
            )
            improvement = 0
        else:
            text = (
                f'Enhanced "{name}" to {quality_tier} with '
                f"{len(applied)} enhancement model{'' if len(applied) == 1 else 's'} applied."
            )
            improvement = _BASE_IMPROVEMENT[QualityTier(quality_tier)] + _IMPROVEMENT_PER_STAGE * len(applied)

        stats = (
            Stat(quality_tier, "Quality"),
            Stat(f"{len(applied)}x", "Models"),
            Stat(f"{seconds:.0f}s", "Processing Time"),
            Stat(f"+{improvement}%", "Improvement"),
        )
        return Report(text=text, stats=stats)
