import hashlib
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from shared.exceptions import TransportError
from shared.models import Session, UploadStatus, UploadTask
from sync_tool.hash_cache import HashCache
from sync_tool.reconciler import Reconciler
from sync_tool.uploader import UploadExecutor, clamp_parallel

SESSION = Session(user_id="42", token="tok", supported_extensions=frozenset({".mp3"}))


class TestClampParallel(unittest.TestCase):
    def test_bounds(self):
        self.assertEqual(clamp_parallel(0), 1)
        self.assertEqual(clamp_parallel(4), 4)
        self.assertEqual(clamp_parallel(100), 8)


class TestUploadExecutor(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.client = MagicMock()
        self.client.upload_file.return_value = 200

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, rel, content):
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def _executor(self, manifest=frozenset(), parallel=4, **kwargs):
        reconciler = Reconciler(self.root, HashCache(), manifest)
        return UploadExecutor(self.client, SESSION, reconciler, parallel=parallel, **kwargs)

    def test_new_file_uploaded_and_known_file_skipped(self):
        a = self._write("a.mp3", b"new song")
        b = self._write("b.mp3", b"old song")
        executor = self._executor(manifest=frozenset({hashlib.md5(b"old song").hexdigest()}))

        outcomes = {o.relative_path: o for o in executor.run([b, a])}

        self.assertEqual(outcomes["a.mp3"].status, UploadStatus.SUCCEEDED)
        self.assertEqual(outcomes["b.mp3"].status, UploadStatus.SKIPPED)
        self.client.upload_file.assert_called_once_with(SESSION, a, "a.mp3")

    def test_failure_isolation(self):
        paths = [self._write(f"{i:02d}.mp3", bytes([i]) * 10) for i in range(10)]

        def upload(session, path, rel):
            if rel == "03.mp3":
                raise TransportError("connection reset")
            return 200

        self.client.upload_file.side_effect = upload
        outcomes = self._executor().run(paths)

        self.assertEqual(len(outcomes), 10)
        failed = [o for o in outcomes if o.status is UploadStatus.FAILED]
        self.assertEqual([o.relative_path for o in failed], ["03.mp3"])
        self.assertIn("connection reset", failed[0].reason)
        self.assertEqual(sum(o.status is UploadStatus.SUCCEEDED for o in outcomes), 9)
        self.assertEqual(self.client.upload_file.call_count, 10)

    def test_non_200_status_is_failure(self):
        path = self._write("a.mp3", b"x")
        self.client.upload_file.return_value = 500

        [outcome] = self._executor().run([path])

        self.assertEqual(outcome.status, UploadStatus.FAILED)
        self.assertEqual(outcome.reason, "HTTP 500")

    def test_no_retry_after_failure(self):
        path = self._write("a.mp3", b"x")
        self.client.upload_file.side_effect = OSError("disk error")

        [outcome] = self._executor().run([path])

        self.assertEqual(outcome.status, UploadStatus.FAILED)
        self.assertEqual(self.client.upload_file.call_count, 1)

    def test_outcomes_carry_ordinal_and_total(self):
        paths = [self._write(f"{name}.mp3", name.encode()) for name in ("c", "a", "b")]
        seen = []
        outcomes = self._executor(on_outcome=seen.append).run(paths)

        self.assertEqual(seen, outcomes)
        by_path = {o.relative_path: o for o in outcomes}
        self.assertEqual(by_path["a.mp3"].ordinal, 1)
        self.assertEqual(by_path["b.mp3"].ordinal, 2)
        self.assertEqual(by_path["c.mp3"].ordinal, 3)
        self.assertTrue(all(o.total == 3 for o in outcomes))

    def test_failing_outcome_callback_keeps_report_complete(self):
        paths = [self._write(f"{i}.mp3", bytes([i])) for i in range(5)]
        on_outcome = MagicMock(side_effect=RuntimeError("display broke"))

        outcomes = self._executor(on_outcome=on_outcome).run(paths)

        self.assertEqual(len(outcomes), 5)
        self.assertEqual(on_outcome.call_count, 5)
        self.assertTrue(all(o.status is UploadStatus.SUCCEEDED for o in outcomes))

    def test_upload_start_callback_only_for_uploads(self):
        a = self._write("a.mp3", b"new")
        b = self._write("b.mp3", b"old")
        started = []
        executor = self._executor(manifest=frozenset({hashlib.md5(b"old").hexdigest()}),
                                  on_upload_start=started.append)
        executor.run([a, b])

        self.assertEqual(started, [UploadTask(path=a, relative_path="a.mp3", ordinal=1, total=2)])

    def test_unexpected_error_becomes_failed_outcome(self):
        a = self._write("a.mp3", b"a")
        b = self._write("b.mp3", b"b")
        executor = self._executor()
        original = executor.reconciler.decide

        def decide(path, ordinal, total):
            if path == a:
                raise RuntimeError("boom")
            return original(path, ordinal, total)

        with patch.object(executor.reconciler, "decide", side_effect=decide):
            outcomes = {o.relative_path: o for o in executor.run([a, b])}

        self.assertEqual(outcomes["a.mp3"].status, UploadStatus.FAILED)
        self.assertIn("boom", outcomes["a.mp3"].reason)
        self.assertEqual(outcomes["b.mp3"].status, UploadStatus.SUCCEEDED)

    def test_parallelism_is_bounded(self):
        paths = [self._write(f"{i}.mp3", bytes([i])) for i in range(12)]
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}
        release = threading.Event()

        def upload(session, path, rel):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
                if state["active"] == 2:
                    release.set()
            release.wait(timeout=5)
            with lock:
                state["active"] -= 1
            return 200

        self.client.upload_file.side_effect = upload
        outcomes = self._executor(parallel=2).run(paths)

        self.assertEqual(len(outcomes), 12)
        self.assertLessEqual(state["peak"], 2)


if __name__ == '__main__':
    unittest.main()
