import threading
import time
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from services.deployd.executor import JobExecutor, TriggerSlot
from services.deployd.runner import ProjectFolderError, check_project_folder, run_build
from services.deployd.status_store import StatusStore
from services.deployd.types import FAILED, STARTED, SUCCEEDED


def _sh(script: str):
    return ("/bin/sh", "-c", script)


class TestTriggerSlot(unittest.TestCase):
    def test_second_offer_is_refused_until_release(self) -> None:
        slot = TriggerSlot()
        self.assertFalse(slot.busy)
        self.assertTrue(slot.offer())
        self.assertTrue(slot.busy)
        self.assertFalse(slot.offer())

        self.assertTrue(slot.take(timeout=0.1))
        # Still taken while the job runs.
        self.assertFalse(slot.offer())

        slot.release()
        self.assertFalse(slot.busy)
        self.assertTrue(slot.offer())

    def test_take_times_out_when_empty(self) -> None:
        self.assertFalse(TriggerSlot().take(timeout=0.01))

    def test_concurrent_offers_admit_exactly_one(self) -> None:
        slot = TriggerSlot()
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def _offer() -> None:
            barrier.wait()
            ok = slot.offer()
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=_offer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count(True), 1)
        self.assertEqual(results.count(False), 7)


class TestRunner(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.project = Path(self._tmp.name)

    def test_project_without_makefile_is_invalid(self) -> None:
        with self.assertRaises(ProjectFolderError):
            check_project_folder(self.project)

        (self.project / "Makefile").write_text("deploy:\n\ttrue\n", encoding="utf-8")
        self.assertEqual(check_project_folder(self.project), self.project / "Makefile")

    def test_output_is_combined_and_cwd_is_project(self) -> None:
        rc, output = run_build(self.project, _sh("pwd; echo to-stderr >&2; exit 3"))
        self.assertEqual(rc, 3)
        self.assertIn(str(self.project.resolve()), output)
        self.assertIn("to-stderr", output)

    def test_missing_executable(self) -> None:
        rc, _output = run_build(self.project, ("/nonexistent/make", "deploy"))
        self.assertNotEqual(rc, 0)


class TestJobExecutor(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.project = Path(self._tmp.name)

        self.store = StatusStore(self.project / ".status", idle_tick=0.05)
        self.stop = threading.Event()
        thread = self.store.start(self.stop)
        self.addCleanup(thread.join, 2)
        self.addCleanup(self.stop.set)

    def _executor(self, command, slot=None) -> JobExecutor:
        return JobExecutor(
            self.project,
            self.store,
            slot or TriggerSlot(),
            command=command,
            idle_tick=0.05,
        )

    def test_successful_build(self) -> None:
        status = self._executor(_sh("echo deployed")).run_once()
        self.assertEqual(status.state, SUCCEEDED)
        self.assertEqual(status.output, "deployed\n")
        self.assertEqual(self.store.get(), status)

    def test_failing_build_keeps_output(self) -> None:
        status = self._executor(_sh("echo partial; exit 2")).run_once()
        self.assertEqual(status.state, FAILED)
        self.assertEqual(status.output, "partial\n")
        self.assertEqual(self.store.get().state, FAILED)

    def test_unlaunchable_build_fails(self) -> None:
        status = self._executor(("/nonexistent/make", "deploy")).run_once()
        self.assertEqual(status.state, FAILED)
        self.assertEqual(self.store.get().state, FAILED)

    def test_started_is_visible_while_building(self) -> None:
        marker = self.project / "running"
        release = self.project / "release"
        script = f"touch {marker}; while [ ! -e {release} ]; do sleep 0.02; done; echo done"
        slot = TriggerSlot()
        executor = self._executor(_sh(script), slot)
        thread = executor.start(self.stop)

        self.assertTrue(slot.offer())
        for _ in range(250):
            if marker.exists():
                break
            time.sleep(0.02)
        self.assertTrue(marker.exists())

        self.assertEqual(self.store.get().state, STARTED)
        self.assertFalse(slot.offer())

        release.touch()
        for _ in range(250):
            if not slot.busy:
                break
            time.sleep(0.02)

        self.assertFalse(slot.busy)
        self.assertEqual(self.store.get().state, SUCCEEDED)

        self.stop.set()
        thread.join(timeout=5)
        self.assertFalse(thread.is_alive())
