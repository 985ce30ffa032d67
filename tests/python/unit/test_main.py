import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

import main


class TestMain(unittest.TestCase):
    def test_missing_secret_exits_with_error(self) -> None:
        with self.assertLogs("deployd", level="CRITICAL") as logs:
            rc = main.main(["--project", "/srv/site", "--status-file", "/tmp/s"])
        self.assertEqual(rc, 1)
        self.assertIn("--secret", "\n".join(logs.output))

    def test_invalid_project_exits_before_serving(self) -> None:
        with TemporaryDirectory() as tmp:
            argv = [
                "--secret",
                "s",
                "--project",
                tmp,
                "--status-file",
                str(Path(tmp) / "status"),
            ]
            with self.assertLogs("deployd", level="CRITICAL") as logs:
                rc = main.main(argv)

        self.assertEqual(rc, 1)
        self.assertIn("project folder appears to be invalid", "\n".join(logs.output))
