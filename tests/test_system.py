"""Tests for revbench.system — platform capabilities and binary checks."""

from __future__ import annotations

import unittest
from unittest.mock import patch

from revbench.errors import UnavailableError
from revbench.system import TIME_BINARIES, check_binaries, logical_cpu_count, time_binary


class TestTimeBinary(unittest.TestCase):
    def test_linux(self) -> None:
        self.assertEqual(time_binary("linux"), "/usr/bin/time")

    def test_darwin(self) -> None:
        self.assertEqual(time_binary("darwin"), "/usr/local/bin/gtime")

    def test_unsupported(self) -> None:
        with self.assertRaises(UnavailableError) as ctx:
            time_binary("win32")
        self.assertIn("win32", str(ctx.exception))

    @patch("revbench.system.sys.platform", "linux")
    def test_defaults_to_host(self) -> None:
        self.assertEqual(time_binary(), TIME_BINARIES["linux"])


class TestLogicalCpuCount(unittest.TestCase):
    @patch("revbench.system.os.cpu_count", return_value=16)
    def test_count(self, _mock: object) -> None:
        self.assertEqual(logical_cpu_count(), 16)

    @patch("revbench.system.os.cpu_count", return_value=None)
    def test_unknown_falls_back_to_one(self, _mock: object) -> None:
        self.assertEqual(logical_cpu_count(), 1)


class TestCheckBinaries(unittest.TestCase):
    @patch("revbench.system.shutil.which", side_effect=lambda p: f"/usr/bin/{p}")
    def test_all_present(self, _mock: object) -> None:
        check_binaries(["git", "make"])

    @patch(
        "revbench.system.shutil.which",
        side_effect=lambda p: None if p in ("gtime", "clang") else f"/usr/bin/{p}",
    )
    def test_missing_listed(self, _mock: object) -> None:
        with self.assertRaises(UnavailableError) as ctx:
            check_binaries(["git", "gtime", "clang"])
        message = str(ctx.exception)
        self.assertIn("gtime", message)
        self.assertIn("clang", message)
        self.assertNotIn("git", message.split(":")[-1])

    def test_empty(self) -> None:
        check_binaries([])


if __name__ == "__main__":
    unittest.main()
