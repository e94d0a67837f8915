"""Tests for revbench.graph — per-job elapsed-time charts."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from revbench.errors import BenchIOError
from revbench.graph import chart_filename, plot_job, plot_job_metrics
from revbench.store import ResultStore, Run

from revbench_test_helpers import DAY, DAY1, make_report


class TestChartFilename(unittest.TestCase):
    def test_plain(self) -> None:
        self.assertEqual(chart_filename("make"), "make.png")

    def test_relative_binary(self) -> None:
        self.assertEqual(chart_filename("./src/bitcoind -x"), "src_bitcoind_-x.png")

    def test_spaces(self) -> None:
        self.assertEqual(chart_filename("unit tests"), "unit_tests.png")


class TestPlot(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.store = ResultStore.open(self.tmpdir / "data")

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def _populate(self, name: str, days: int = 3) -> None:
        for day in range(days):
            run_id = self.store.record_run(
                Run(
                    run_date=DAY1 + day * DAY,
                    commit_id=f"c{day}",
                    commit_date=DAY1 + day * DAY - 60,
                    was_primary_line=True,
                )
            )
            self.store.record_job(run_id, name, make_report(elapsed_time=100.0 + day))

    def test_empty_store(self) -> None:
        out = self.tmpdir / "graphs"
        self.assertEqual(plot_job_metrics(self.store, out), [])
        self.assertTrue(out.is_dir())

    def test_unknown_job(self) -> None:
        self.assertIsNone(plot_job(self.store, "nope", self.tmpdir))

    def test_one_png_per_job(self) -> None:
        self._populate("make")
        self._populate("./src/bench_bitcoin -filter=X", days=1)
        out = self.tmpdir / "graphs"
        paths = plot_job_metrics(self.store, out)
        self.assertEqual(
            sorted(p.name for p in paths),
            ["make.png", "src_bench_bitcoin_-filter=X.png"],
        )
        for path in paths:
            self.assertEqual(path.parent, out)
            self.assertEqual(path.read_bytes()[:8], b"\x89PNG\r\n\x1a\n")

    def test_output_dir_blocked(self) -> None:
        blocker = self.tmpdir / "file"
        blocker.write_text("")
        with self.assertRaises(BenchIOError):
            plot_job_metrics(self.store, blocker / "graphs")


if __name__ == "__main__":
    unittest.main()
