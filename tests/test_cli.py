"""Tests for revbench.cli — click entry point."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from revbench.cli import main
from revbench.errors import EX_CONFIG, EX_USAGE
from revbench.store import ResultStore, Run

from revbench_test_helpers import DAY, DAY1, HAS_GIT, commit_at, init_repo, make_report, write_fake_time


class _CliCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.data_dir = self.tmpdir / "data"

    def tearDown(self) -> None:
        logging.getLogger("revbench").handlers.clear()
        self._tmp.cleanup()

    def invoke(self, *args: str):  # noqa: ANN201
        return CliRunner().invoke(main, ["--bench-data-dir", str(self.data_dir), *args])


class TestHelp(unittest.TestCase):
    def test_main_help(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        self.assertEqual(result.exit_code, 0)
        for word in ("bench", "graph", "show", "--config-file", "--bench-data-dir"):
            self.assertIn(word, result.output)

    def test_bench_help(self) -> None:
        result = CliRunner().invoke(main, ["bench", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("once", result.output)
        self.assertIn("daily", result.output)

    def test_once_help(self) -> None:
        result = CliRunner().invoke(main, ["bench", "once", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--commit", result.output)
        self.assertIn("--date", result.output)

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("0.1.0", result.output)


class TestBenchErrors(_CliCase):
    def test_commit_and_date_exclusive(self) -> None:
        result = self.invoke("bench", "once", str(self.tmpdir), "--commit", "abc", "--date", "2024-01-01")
        self.assertEqual(result.exit_code, EX_USAGE)
        self.assertIn("mutually exclusive", result.output)

    def test_bad_date(self) -> None:
        result = self.invoke("bench", "daily", str(self.tmpdir), "2024-01-01", "tomorrow")
        self.assertEqual(result.exit_code, EX_USAGE)
        self.assertIn("tomorrow", result.output)

    def test_missing_config(self) -> None:
        result = self.invoke(
            "--config-file", str(self.tmpdir / "missing.toml"), "bench", "once", str(self.tmpdir)
        )
        self.assertEqual(result.exit_code, EX_CONFIG)
        self.assertIn("Config file not found", result.output)

    def test_empty_command_is_usage_error(self) -> None:
        config = self.tmpdir / "config.toml"
        config.write_text('[jobs]\njobs = [{ name = "blank", command = "  " }]\n')
        result = self.invoke("--config-file", str(config), "bench", "once", str(self.tmpdir))
        self.assertEqual(result.exit_code, EX_USAGE)
        self.assertIn("empty command", result.output)

    def test_missing_src_dir(self) -> None:
        result = self.invoke("bench", "once", str(self.tmpdir / "nope"))
        self.assertNotEqual(result.exit_code, 0)


class TestShow(_CliCase):
    def _populate(self) -> None:
        with ResultStore.open(self.data_dir) as store:
            for day, elapsed in enumerate([100.0, 90.0, 95.0]):
                run_id = store.record_run(
                    Run(
                        run_date=DAY1 + day * DAY,
                        commit_id=f"{day}" * 40,
                        commit_date=DAY1 + day * DAY - 60,
                        was_primary_line=True,
                    )
                )
                store.record_job(run_id, "make", make_report(elapsed_time=elapsed))

    def test_empty(self) -> None:
        result = self.invoke("show")
        self.assertEqual(result.exit_code, 0)
        self.assertIn("No results recorded yet", result.output)

    def test_summary(self) -> None:
        self._populate()
        result = self.invoke("show")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("make", result.output)
        self.assertIn("1m 35s", result.output)

    def test_job_detail(self) -> None:
        self._populate()
        result = self.invoke("show", "make")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("2024-01-03", result.output)
        self.assertIn("2222222222", result.output)
        self.assertIn("745%", result.output)

    def test_unknown_job(self) -> None:
        self._populate()
        result = self.invoke("show", "nope")
        self.assertEqual(result.exit_code, EX_USAGE)


class TestGraph(_CliCase):
    def test_no_results(self) -> None:
        result = self.invoke("graph", "generate", "--output-dir", str(self.tmpdir / "graphs"))
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No results to plot", result.output)


@unittest.skipUnless(HAS_GIT, "git not available")
class TestBenchEndToEnd(_CliCase):
    def setUp(self) -> None:
        super().setUp()
        self.repo = self.tmpdir / "repo"
        init_repo(self.repo)
        self.first = commit_at(self.repo, DAY1 + 3600, "first")
        commit_at(self.repo, DAY1 + DAY + 3600, "second")
        self.fake_time = write_fake_time(self.tmpdir)
        self.config = self.tmpdir / "config.toml"
        self.config.write_text(
            "[settings]\n"
            'binaries = ["git"]\n'
            "[jobs]\n"
            "cleanup = true\n"
            "jobs = [\n"
            '  { name = "prepare", command = "mkdir -p {datadir}/blocks", bench = false },\n'
            f'  {{ name = "hi", command = "echo hi {{cores}}", outfile = "{self.tmpdir}/hi.txt" }},\n'
            "]\n"
        )

    def _bench(self, *args: str, db_name: str = "db.sqlite"):  # noqa: ANN202
        with patch("revbench.cli.time_binary", return_value=str(self.fake_time)):
            return self.invoke(
                "--config-file",
                str(self.config),
                "--work-dir",
                str(self.tmpdir / "work"),
                "--db-name",
                db_name,
                "bench",
                *args,
            )

    def test_log_tree_per_database(self) -> None:
        for db_name in ("a.sqlite", "b.sqlite"):
            result = self._bench("once", str(self.repo), "--commit", self.first, db_name=db_name)
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("Recorded run 1", result.output)
        for db_name in ("a.sqlite", "b.sqlite"):
            stdout_log = self.data_dir / "logs" / db_name / "run-1" / "hi.stdout.log"
            self.assertIn("hi", stdout_log.read_text())

    def test_once_at_commit(self) -> None:
        result = self._bench("once", str(self.repo), "--commit", self.first)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Recorded run 1", result.output)
        with ResultStore.open(self.data_dir) as store:
            [(job, run)] = store.get_jobs_by_name("hi")
        self.assertEqual(run.commit_id, self.first)
        self.assertFalse(run.was_primary_line)
        self.assertIn("echo hi", job.report.command)
        self.assertEqual(list((self.tmpdir / "work").iterdir()), [])

    def test_daily(self) -> None:
        result = self._bench("daily", str(self.repo), "2024-01-02", "2024-01-03")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Recorded 2 run(s)", result.output)
        with ResultStore.open(self.data_dir) as store:
            runs = store.get_runs()
        self.assertEqual([r.run_date for r in runs], [DAY1 + DAY, DAY1 + 2 * DAY])

    def test_wrong_tree(self) -> None:
        (self.repo / "src" / "init.cpp").unlink()
        result = self._bench("once", str(self.repo))
        self.assertEqual(result.exit_code, EX_USAGE)
        self.assertIn("init.cpp", result.output)


if __name__ == "__main__":
    unittest.main()
