"""Job execution for one sweep iteration.

Each job is either wrapped by GNU ``time -v`` (instrumented) or run as
is (raw).  Output goes to per-run, per-job log files so historical runs
never overwrite each other.  Jobs run one after another and the first
failure stops the run: later jobs usually depend on earlier ones (a
configure step, a built binary, a populated data directory).
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from revbench.config import Instrumented, JobDef, Raw
from revbench.errors import BenchIOError, JobFailedError, UsageError
from revbench.logging import RunLogAdapter, get_logger
from revbench.store import ResultStore
from revbench.timing import TimeReport

log = get_logger("executor")


# ---------------------------------------------------------------------------
# Command and environment construction
# ---------------------------------------------------------------------------


def parse_env(entries: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings; malformed entries are skipped with a warning."""
    env: dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            log.warning("Ignoring malformed env entry %r (expected KEY=VALUE)", entry)
            continue
        env[key] = value
    return env


def build_env(overrides: Iterable[str]) -> dict[str, str]:
    """The inherited environment with the job's overrides layered on top."""
    env = dict(os.environ)
    env.update(parse_env(overrides))
    return env


def report_path_for(job: JobDef, cwd: Path) -> Path | None:
    """Absolute report path of an instrumented job, None for raw jobs."""
    if isinstance(job.mode, Instrumented):
        path = job.mode.report_path
        return path if path.is_absolute() else cwd / path
    if isinstance(job.mode, Raw):
        return None
    raise TypeError(f"unknown job mode {job.mode!r}")


def build_command(job: JobDef, time_binary: str, cwd: Path) -> list[str]:
    """Argument vector for *job*.

    Raises:
        UsageError: If the command is empty after trimming.
    """
    argv = job.argv
    if not argv:
        raise UsageError(f"Empty command provided for job {job.name!r}")

    report_path = report_path_for(job, cwd)
    if report_path is None:
        return argv
    return [time_binary, "-v", f"--output={report_path}", *argv]


def log_paths(log_dir: Path, run_id: int, job_name: str) -> tuple[Path, Path]:
    """(stdout, stderr) log paths, unique per run and job.

    The job name is percent-encoded, which keeps distinct names distinct
    (``make check`` -> ``make%20check``, ``make_check`` unchanged).
    """
    safe = quote(job_name, safe="")
    run_dir = log_dir / f"run-{run_id}"
    return run_dir / f"{safe}.stdout.log", run_dir / f"{safe}.stderr.log"


# ---------------------------------------------------------------------------
# JobExecutor
# ---------------------------------------------------------------------------


@dataclass
class JobOutcome:
    """What happened to one successful job."""

    job_name: str
    returncode: int
    stdout_path: Path
    stderr_path: Path
    job_id: int | None = None  # Set when a report was stored.
    report: TimeReport | None = None


class JobExecutor:
    """Runs job definitions in the source tree and stores their reports."""

    def __init__(
        self,
        store: ResultStore,
        src_dir: Path,
        log_dir: Path,
        time_binary: str,
    ) -> None:
        self.store = store
        self.src_dir = Path(src_dir)
        self.log_dir = Path(log_dir)
        self.time_binary = time_binary

    def run_jobs(self, jobs: Iterable[JobDef], run_id: int) -> list[JobOutcome]:
        """Run *jobs* in order for *run_id*, stopping at the first failure.

        Raises:
            JobFailedError: On the first job that exits nonzero; the
                remaining jobs are not run.
        """
        outcomes: list[JobOutcome] = []
        for job in jobs:
            outcomes.append(self.run_job(job, run_id))
        return outcomes

    def run_job(self, job: JobDef, run_id: int) -> JobOutcome:
        """Run one job and, if instrumented, decode and store its report."""
        command = build_command(job, self.time_binary, self.src_dir)
        env = build_env(job.env)
        stdout_path, stderr_path = log_paths(self.log_dir, run_id, job.name)
        run_log = RunLogAdapter(log, run_id)

        try:
            stdout_path.parent.mkdir(parents=True, exist_ok=True)
            with open(stdout_path, "wb") as out, open(stderr_path, "wb") as err:
                run_log.info("Running job %s: %s", job.name, " ".join(command))
                try:
                    proc = subprocess.Popen(
                        command,
                        cwd=str(self.src_dir),
                        env=env,
                        stdout=out,
                        stderr=err,
                    )
                except FileNotFoundError as exc:
                    raise UsageError(
                        f"Cannot run job {job.name!r}: {command[0]} not found"
                    ) from exc
                returncode = proc.wait()
        except OSError as exc:
            raise BenchIOError(f"Cannot run job {job.name!r}: {exc}") from exc

        if returncode != 0:
            raise JobFailedError(job.name, returncode, stderr_path)
        run_log.info("Job %s completed successfully, see '%s' for output", job.name, stdout_path)

        outcome = JobOutcome(
            job_name=job.name,
            returncode=returncode,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
        )
        report_path = report_path_for(job, self.src_dir)
        if report_path is not None:
            outcome.report = TimeReport.from_file(report_path)
            outcome.job_id = self.store.record_job(run_id, job.name, outcome.report)
        return outcome
