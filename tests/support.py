import itertools
import shutil
import subprocess
import tempfile
from pathlib import Path

from django.core.files.uploadedfile import SimpleUploadedFile

from enhancer.ledger import InMemoryJobLedger
from enhancer.pipeline import EnhancementPipeline
from enhancer.report import HeuristicReportSynthesizer
from enhancer.storage import ArtifactStore
from enhancer.transcode import Transcoder
from enhancer.utils import NameGenerator

MISSING_FFMPEG = "/nonexistent/bin/ffmpeg"
SOURCE_BYTES = b"\x00\x00\x00\x18ftypmp42" + bytes(range(256)) * 8


class SequentialNames(NameGenerator):
    """Deterministic tokens: t0001, t0002, ..."""

    def __init__(self):
        super().__init__()
        self._seq = itertools.count(1)

    def token(self) -> str:
        return f"t{next(self._seq):04d}"


def video_upload(name="clip.mp4", content=SOURCE_BYTES, content_type="video/mp4"):
    return SimpleUploadedFile(name, content, content_type=content_type)


def fake_ffmpeg(payload=b"ENHANCED-VIDEO"):
    """subprocess.run stand-in that writes payload to the output path (last argument)."""

    def run(cmd, **kwargs):
        Path(cmd[-1]).write_bytes(payload)
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    return run


def files_in(root: Path):
    if not root.is_dir():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_file())


class WorkspaceMixin:
    """Fresh upload/output roots under a temp dir, removed after each test."""

    def setUp(self):
        super().setUp()
        self.tmp = Path(tempfile.mkdtemp(prefix="visionboost-test-"))
        self.addCleanup(shutil.rmtree, self.tmp, ignore_errors=True)
        self.upload_root = self.tmp / "uploads"
        self.output_root = self.tmp / "enhanced"

    def make_store(self, namer=None):
        return ArtifactStore(self.upload_root, self.output_root, namer or SequentialNames())

    def make_pipeline(self, *, transcoder=None, store=None, **kwargs):
        store = store or self.make_store()
        kwargs.setdefault("queue_timeout", None)
        return EnhancementPipeline(
            store=store,
            ledger=InMemoryJobLedger(store),
            transcoder=transcoder or Transcoder(MISSING_FFMPEG, timeout=5),
            reporter=HeuristicReportSynthesizer(),
            **kwargs,
        )
