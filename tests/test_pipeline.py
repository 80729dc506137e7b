import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest import mock

from enhancer.errors import IntakeRejected, ServiceBusy, StorageFailure
from enhancer.models import JobStatus
from enhancer.pipeline import PipelineState
from enhancer.transcode import Transcoder
from enhancer.utils import NameGenerator
from tests.support import MISSING_FFMPEG, SOURCE_BYTES, WorkspaceMixin, fake_ffmpeg, files_in, video_upload


class TestHappyPath(WorkspaceMixin, unittest.TestCase):
    def test_recorded_job(self):
        pipeline = self.make_pipeline(transcoder=Transcoder("ffmpeg", timeout=5), id_factory=lambda: "job-1")
        with mock.patch("enhancer.transcode.subprocess.run", side_effect=fake_ffmpeg()):
            outcome = pipeline.run(video_upload("trip.mp4"), "4K", '["Sharpening", "NoiseReduction"]')

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.state, PipelineState.RECORDED)
        job = outcome.job
        self.assertEqual(job.id, "job-1")
        self.assertEqual(job.source_name, "trip.mp4")
        self.assertEqual(job.quality_tier, "4K")
        self.assertEqual(job.enhancements, ("Sharpening", "NoiseReduction"))
        self.assertEqual(job.status, JobStatus.ENHANCED)
        self.assertIsNotNone(job.created_at)
        self.assertEqual(pipeline.ledger.list(), (job,))
        self.assertEqual(pipeline.store.resolve_output(job.output_artifact).read_bytes(), b"ENHANCED-VIDEO")
        self.assertEqual(files_in(self.upload_root), [])

    def test_size_is_rounded_to_one_decimal(self):
        pipeline = self.make_pipeline()
        job = pipeline.enhance(video_upload(content=b"x" * (3 * 1024 * 1024 + 200_000)), "1080p")
        self.assertEqual(job.source_size_mb, 3.2)

    def test_malformed_enhancements_degrade_to_none(self):
        job = self.make_pipeline().enhance(video_upload(), "1080p", "[not json")
        self.assertEqual(job.enhancements, ())


class TestFallback(WorkspaceMixin, unittest.TestCase):
    def test_missing_transcoder_still_records_original_bytes(self):
        pipeline = self.make_pipeline(transcoder=Transcoder(MISSING_FFMPEG))
        outcome = pipeline.run(video_upload(), "8K", ["Stabilization"])

        self.assertEqual(outcome.state, PipelineState.RECORDED)
        job = outcome.job
        self.assertEqual(job.status, JobStatus.ORIGINAL_RETURNED)
        self.assertTrue(job.used_fallback)
        self.assertTrue(job.report.startswith("Enhancement unavailable"))
        self.assertEqual(pipeline.store.resolve_output(job.output_artifact).read_bytes(), SOURCE_BYTES)
        self.assertEqual(files_in(self.upload_root), [])


class TestRejection(WorkspaceMixin, unittest.TestCase):
    def assertRejectedWithoutFiles(self, outcome, error_type=IntakeRejected):
        self.assertEqual(outcome.state, PipelineState.REJECTED)
        self.assertIsInstance(outcome.error, error_type)
        self.assertIsNone(outcome.job)
        self.assertEqual(files_in(self.upload_root), [])
        self.assertEqual(files_in(self.output_root), [])

    def test_unsupported_tier(self):
        pipeline = self.make_pipeline()
        outcome = pipeline.run(video_upload(), "2K", [])
        self.assertRejectedWithoutFiles(outcome)
        self.assertIn("2K", outcome.reason)
        self.assertEqual(pipeline.ledger.list(), ())

    def test_missing_upload(self):
        outcome = self.make_pipeline().run(None, "1080p", [])
        self.assertRejectedWithoutFiles(outcome)
        self.assertEqual(outcome.reason, "No file")

    def test_oversize_upload(self):
        outcome = self.make_pipeline(max_upload_bytes=10).run(video_upload(content=b"x" * 11), "1080p")
        self.assertRejectedWithoutFiles(outcome)

    def test_enhance_raises_the_rejection(self):
        with self.assertRaises(IntakeRejected):
            self.make_pipeline().enhance(video_upload(), "720p")

    def test_busy_when_all_slots_taken(self):
        entered, release = threading.Event(), threading.Event()
        inner = Transcoder(MISSING_FFMPEG)

        class SlowTranscoder:
            def execute(self, source, dest, chain):
                entered.set()
                release.wait(10)
                return inner.execute(source, dest, chain)

        pipeline = self.make_pipeline(transcoder=SlowTranscoder(), max_concurrent=1, queue_timeout=0)
        with ThreadPoolExecutor(max_workers=1) as pool:
            first = pool.submit(pipeline.run, video_upload("first.mp4"), "1080p")
            self.assertTrue(entered.wait(10))
            staged_before = files_in(self.upload_root)

            second = pipeline.run(video_upload("second.mp4"), "1080p")

            self.assertEqual(second.state, PipelineState.REJECTED)
            self.assertIsInstance(second.error, ServiceBusy)
            self.assertEqual(files_in(self.upload_root), staged_before)
            release.set()
            self.assertTrue(first.result(timeout=10).ok)

        self.assertEqual(pipeline.run(video_upload("third.mp4"), "1080p").state, PipelineState.RECORDED)


class TestStorageFailure(WorkspaceMixin, unittest.TestCase):
    def test_unwritable_staging_root_fails_request(self):
        blocker = self.tmp / "blocker"
        blocker.write_text("")
        self.upload_root = blocker / "uploads"
        pipeline = self.make_pipeline()
        outcome = pipeline.run(video_upload(), "1080p")
        self.assertEqual(outcome.state, PipelineState.FAILED)
        self.assertIsInstance(outcome.error, StorageFailure)
        self.assertEqual(pipeline.ledger.list(), ())

    def test_failure_releases_slot_and_staged_file(self):
        pipeline = self.make_pipeline(max_concurrent=1, queue_timeout=0)
        with mock.patch.object(pipeline.transcoder, "execute", side_effect=StorageFailure("disk full")):
            outcome = pipeline.run(video_upload(), "1080p")
        self.assertEqual(outcome.state, PipelineState.FAILED)
        self.assertEqual(files_in(self.upload_root), [])
        self.assertTrue(pipeline.run(video_upload(), "1080p").ok)

    def test_cleanup_error_does_not_undo_recorded_job(self):
        pipeline = self.make_pipeline()
        real_unlink = Path.unlink

        def locked_upload(path, *args, **kwargs):
            if path.parent == self.upload_root:
                raise PermissionError("file in use")
            return real_unlink(path, *args, **kwargs)

        with mock.patch.object(Path, "unlink", autospec=True, side_effect=locked_upload):
            with self.assertLogs("enhancer.storage", level="WARNING"):
                outcome = pipeline.run(video_upload(), "1080p")
        self.assertTrue(outcome.ok)
        self.assertEqual(len(pipeline.ledger.list()), 1)


class TestConcurrency(WorkspaceMixin, unittest.TestCase):
    def test_parallel_requests_get_distinct_jobs_and_artifacts(self):
        pipeline = self.make_pipeline(store=self.make_store(namer=NameGenerator()), max_concurrent=4)
        payloads = [SOURCE_BYTES + bytes([i]) for i in range(10)]

        with ThreadPoolExecutor(max_workers=10) as pool:
            outcomes = list(pool.map(
                lambda i: pipeline.run(video_upload(f"clip{i}.mp4", payloads[i]), "1080p"),
                range(10),
            ))

        self.assertTrue(all(o.ok for o in outcomes))
        jobs = [o.job for o in outcomes]
        self.assertEqual(len({job.id for job in jobs}), 10)
        self.assertEqual(len({job.output_artifact for job in jobs}), 10)
        self.assertEqual(len(files_in(self.output_root)), 10)
        for i, job in enumerate(jobs):
            self.assertEqual(pipeline.store.resolve_output(job.output_artifact).read_bytes(), payloads[i])
        self.assertEqual(files_in(self.upload_root), [])

    def test_clear_during_transcode_keeps_the_running_job(self):
        pipeline = self.make_pipeline(transcoder=Transcoder("ffmpeg", timeout=5))
        write_output = fake_ffmpeg()

        def encode_then_clear(cmd, **kwargs):
            result = write_output(cmd, **kwargs)
            pipeline.ledger.clear()
            return result

        with mock.patch("enhancer.transcode.subprocess.run", side_effect=encode_then_clear):
            outcome = pipeline.run(video_upload(), "1080p", ["Sharpening"])

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.job.status, JobStatus.ENHANCED)
        self.assertEqual(pipeline.store.resolve_output(outcome.job.output_artifact).read_bytes(), b"ENHANCED-VIDEO")
        self.assertEqual(pipeline.ledger.list(), (outcome.job,))

    def test_clear_after_runs(self):
        pipeline = self.make_pipeline()
        for _ in range(3):
            pipeline.enhance(video_upload(), "4K", ["ColorGrade"])
        pipeline.ledger.clear()
        self.assertEqual(pipeline.ledger.list(), ())
        self.assertEqual(files_in(self.output_root), [])
