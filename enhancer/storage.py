import logging
import threading
from pathlib import Path
from typing import Optional

from .errors import ArtifactNotFound, InvalidReference, StorageFailure
from .utils import NameGenerator, safe_extension

logger = logging.getLogger(__name__)

OUTPUT_PREFIX = "enhanced_"
OUTPUT_SUFFIX = ".mp4"

_FORBIDDEN_IN_NAMES = ("/", "\\", "..", "\x00")


class ArtifactStore:
    """Upload staging directory plus the directory enhanced videos are served from.

    Both directories are created on first use. Names handed to
    ``output_path``/``resolve_output`` come from URLs and are checked before
    any filesystem call is made.
    """

    def __init__(self, upload_root: Path, output_root: Path, namer: Optional[NameGenerator] = None):
        self.upload_root = Path(upload_root)
        self.output_root = Path(output_root)
        self.namer = namer or NameGenerator()
        self._lock = threading.RLock()

    def _ensure(self, root: Path) -> Path:
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Cannot create directory {root}: {exc}") from exc
        return root

    # -- uploads -----------------------------------------------------------

    def stage(self, upload) -> Path:
        """Save an uploaded file to UPLOAD_ROOT/<token><ext> and return its path."""
        uploads_dir = self._ensure(self.upload_root)
        dest = uploads_dir / f"{self.namer.token()}{safe_extension(upload.name)}"
        try:
            with open(dest, "wb") as f:
                for chunk in upload.chunks():
                    f.write(chunk)
        except OSError as exc:
            dest.unlink(missing_ok=True)
            raise StorageFailure(f"Cannot stage upload: {exc}") from exc
        return dest

    def discard_staged(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove staged upload %s", path, exc_info=True)

    # -- outputs -----------------------------------------------------------

    def allocate_output(self) -> tuple[str, Path]:
        """Reserve a fresh artifact name; nothing is written yet."""
        self._ensure(self.output_root)
        name = f"{OUTPUT_PREFIX}{self.namer.token()}{OUTPUT_SUFFIX}"
        return name, self.output_path(name)

    def output_path(self, name: str) -> Path:
        if not name or any(token in name for token in _FORBIDDEN_IN_NAMES):
            raise InvalidReference(f"Invalid artifact name: {name!r}")
        return self.output_root / name

    def resolve_output(self, name: str) -> Path:
        path = self.output_path(name)
        if not path.is_file():
            raise ArtifactNotFound(name)
        return path

    def finalize(self, name: str) -> Path:
        """Confirm the transcoder left a readable artifact and publish it for download."""
        with self._lock:
            path = self.output_path(name)
            try:
                size = path.stat().st_size
            except OSError as exc:
                raise StorageFailure(f"Artifact {name} is missing: {exc}") from exc
            logger.debug("Finalized %s (%d bytes)", name, size)
            return path

    def purge(self) -> int:
        """Delete every file under the output root. Returns how many were removed."""
        removed = 0
        with self._lock:
            if not self.output_root.is_dir():
                return 0
            for p in self.output_root.iterdir():
                if not p.is_file():
                    continue
                try:
                    p.unlink()
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    raise StorageFailure(f"Cannot delete {p.name}: {exc}") from exc
                removed += 1
        logger.info("Purged %d enhanced artifact(s)", removed)
        return removed
