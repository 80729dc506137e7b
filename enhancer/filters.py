"""Filter graph builder: maps a quality tier and enhancement toggles to an ffmpeg filter chain."""

import json
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Enhancement, QualityTier

logger = logging.getLogger(__name__)

TARGET_RESOLUTIONS = {
    QualityTier.FHD: (1920, 1080),
    QualityTier.UHD_4K: (3840, 2160),
    QualityTier.UHD_8K: (7680, 4320),
}


@dataclass(frozen=True)
class FilterStage:
    name: str
    params: tuple[tuple[str, str], ...] = ()

    def render(self) -> str:
        if not self.params:
            return self.name
        return self.name + "=" + ":".join(f"{key}={value}" for key, value in self.params)


# Canonical order: filter order changes the picture, so it never follows the request order.
ENHANCEMENT_STAGES = (
    (Enhancement.NOISE_REDUCTION, FilterStage("hqdn3d", (
        ("luma_spatial", "4"),
        ("chroma_spatial", "3"),
        ("luma_tmp", "6"),
        ("chroma_tmp", "4.5"),
    ))),
    (Enhancement.STABILIZATION, FilterStage("deshake")),
    (Enhancement.COLOR_GRADE, FilterStage("eq", (
        ("contrast", "1.08"),
        ("brightness", "0.02"),
        ("saturation", "1.20"),
        ("gamma", "1.05"),
    ))),
    (Enhancement.SHARPENING, FilterStage("unsharp", (
        ("luma_msize_x", "5"),
        ("luma_msize_y", "5"),
        ("luma_amount", "1.0"),
        ("chroma_msize_x", "5"),
        ("chroma_msize_y", "5"),
        ("chroma_amount", "0.0"),
    ))),
)


def target_resolution(quality_tier: str) -> tuple[int, int]:
    """Return (width, height) for a tier; raises ValueError for anything outside the table."""
    return TARGET_RESOLUTIONS[QualityTier(quality_tier)]


def build_filter_chain(quality_tier: str, enhancements: Iterable[str]) -> tuple[FilterStage, ...]:
    """Build the ordered filter chain for a request.

    The first stage scales up to the tier resolution keeping the aspect ratio
    (the frame grows to cover the target), the second rounds both dimensions
    down to even numbers for libx264. One stage per recognized toggle follows
    in canonical order. Unknown toggles and repeats are ignored.
    """
    width, height = target_resolution(quality_tier)
    chain = [
        FilterStage("scale", (
            ("w", str(width)),
            ("h", str(height)),
            ("force_original_aspect_ratio", "increase"),
            ("flags", "lanczos"),
        )),
        FilterStage("scale", (("w", "trunc(iw/2)*2"), ("h", "trunc(ih/2)*2"))),
    ]
    requested = set(enhancements)
    chain.extend(stage for toggle, stage in ENHANCEMENT_STAGES if toggle.value in requested)
    return tuple(chain)


def applied_enhancements(enhancements: Iterable[str]) -> tuple[str, ...]:
    """Recognized toggles from a request, de-duplicated, in canonical order."""
    requested = set(enhancements)
    return tuple(toggle.value for toggle, _ in ENHANCEMENT_STAGES if toggle.value in requested)


def render_filter_chain(chain: Sequence[FilterStage]) -> str:
    return ",".join(stage.render() for stage in chain)


def parse_enhancements(raw) -> tuple[str, ...]:
    """Normalize a caller-supplied toggle list.

    Accepts a list/tuple or a JSON string encoding one. Anything malformed
    degrades to an empty tuple; non-string items are dropped.
    """
    if raw is None or raw == "":
        return ()
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed enhancement list: %.200r", raw)
            return ()
    if not isinstance(raw, (list, tuple)):
        logger.warning("Ignoring enhancement list of type %s", type(raw).__name__)
        return ()
    return tuple(item for item in raw if isinstance(item, str))
