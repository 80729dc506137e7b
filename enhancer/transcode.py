import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .errors import StorageFailure, TranscodeFailure
from .filters import FilterStage, render_filter_chain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscodeOutcome:
    used_fallback: bool
    failure: Optional[TranscodeFailure] = None


PARTIAL_DIR = ".partial"


def _partial_path(dest: Path) -> Path:
    # Subdirectory of dest's directory: os.replace stays a rename on one
    # filesystem, and purging the output root never sees unfinished files.
    partial_dir = dest.parent / PARTIAL_DIR
    partial_dir.mkdir(parents=True, exist_ok=True)
    return partial_dir / f"{dest.name}.part"


class Transcoder:
    """Runs ffmpeg over a filter chain with the fixed H.264/AAC output profile."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", timeout: Optional[float] = None):
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout = timeout

    def build_command(self, source: Path, dest: Path, chain: Sequence[FilterStage]) -> list[str]:
        return [
            self.ffmpeg_bin,
            "-y",
            "-hide_banner",
            "-loglevel", "error",
            "-i", str(source),
            "-vf", render_filter_chain(chain),
            "-c:v", "libx264",
            "-preset", "veryfast",
            "-crf", "23",
            "-c:a", "aac",
            "-b:a", "128k",
            "-movflags", "+faststart",
            "-f", "mp4",
            str(dest),
        ]

    def transcode(self, source: Path, dest: Path, chain: Sequence[FilterStage]) -> None:
        """Encode source into dest. Raises TranscodeFailure; dest is untouched on failure."""
        dest = Path(dest)
        try:
            partial = _partial_path(dest)
        except OSError as e:
            raise TranscodeFailure(f"Cannot prepare partial output for {dest.name}: {e}") from e
        cmd = self.build_command(source, partial, chain)
        try:
            subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=self.timeout)
            if not partial.is_file() or partial.stat().st_size == 0:
                raise TranscodeFailure("ffmpeg exited cleanly but produced no output")
            os.replace(partial, dest)
        except subprocess.TimeoutExpired as e:
            raise TranscodeFailure(f"ffmpeg timed out after {e.timeout:g}s") from e
        except subprocess.CalledProcessError as e:
            err = e.stderr.decode("utf-8", errors="ignore") if e.stderr else str(e)
            raise TranscodeFailure(f"ffmpeg exited with status {e.returncode}: {err[-2000:]}") from e
        except OSError as e:
            # Missing or non-executable binary, or the rename failed.
            raise TranscodeFailure(f"ffmpeg could not run: {e}") from e
        finally:
            partial.unlink(missing_ok=True)

    def copy_verbatim(self, source: Path, dest: Path) -> None:
        dest = Path(dest)
        try:
            partial = _partial_path(dest)
        except OSError as e:
            raise StorageFailure(f"Cannot prepare partial output for {dest.name}: {e}") from e
        try:
            shutil.copyfile(source, partial)
            os.replace(partial, dest)
        except OSError as e:
            raise StorageFailure(f"Fallback copy of {Path(source).name} failed: {e}") from e
        finally:
            partial.unlink(missing_ok=True)

    def execute(self, source: Path, dest: Path, chain: Sequence[FilterStage]) -> TranscodeOutcome:
        """Transcode, or copy the source unchanged if ffmpeg fails.

        Either way exactly one complete file exists at dest on return. Only a
        failing fallback copy escapes, as StorageFailure.
        """
        try:
            self.transcode(source, dest, chain)
        except TranscodeFailure as failure:
            logger.warning("Transcode of %s failed, returning original: %s", Path(source).name, failure)
            self.copy_verbatim(source, dest)
            return TranscodeOutcome(used_fallback=True, failure=failure)
        return TranscodeOutcome(used_fallback=False)
