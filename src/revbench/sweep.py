"""Sweep controller: resolve, check out, run and record, per point in time.

Two modes:

- :class:`Single`: one iteration, at an explicit revision or at the last
  main-line commit before a date (default: now).
- :class:`Multi`: one iteration per day from ``start`` to ``end``
  inclusive, stepping exactly 86400 seconds; each day resolves its own
  commit.

Each iteration moves through :class:`SweepState`::

    IDLE -> RESOLVING -> CHECKED_OUT -> EXECUTING -> RECORDED
         -> (CLEANING_UP) -> IDLE | DONE

Any error aborts the whole sweep and leaves ``state`` at the phase that
failed.  Nothing is retried.
"""

from __future__ import annotations

import enum
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from revbench.config import BenchConfig, substitute_jobs
from revbench.errors import BenchIOError, UsageError
from revbench.executor import JobExecutor
from revbench.git import CheckoutManager, CommitRef, CommitResolver, format_timestamp
from revbench.logging import RunLogAdapter, get_logger
from revbench.store import ResultStore, Run
from revbench.system import logical_cpu_count

log = get_logger("sweep")

DAY_SECONDS = 86400

# Files in the work dir that survive cleanup.
PRESERVED_FILES = frozenset({"debug.log"})


def parse_date(text: str) -> int:
    """``YYYY-MM-DD`` -> unix timestamp of that day's midnight UTC."""
    try:
        day = datetime.strptime(text.strip(), "%Y-%m-%d")
    except ValueError as exc:
        raise UsageError(f"Invalid date {text!r}, expected YYYY-MM-DD") from exc
    return int(day.replace(tzinfo=timezone.utc).timestamp())


def erase_work_dir(work_dir: Path, keep: frozenset[str] = PRESERVED_FILES) -> None:
    """Delete everything inside *work_dir* except the names in *keep*."""
    try:
        for entry in work_dir.iterdir():
            if entry.name in keep:
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
    except OSError as exc:
        raise BenchIOError(f"Failed to clean work directory {work_dir}: {exc}") from exc
    log.info("Cleaned work directory %s", work_dir)


# ---------------------------------------------------------------------------
# Modes and states
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Single:
    """One iteration at *revision*, or at the last commit before *date*."""

    revision: str | None = None
    date: int | None = None


@dataclass(frozen=True)
class Multi:
    """One iteration per day, *start* and *end* inclusive (unix seconds)."""

    start: int
    end: int


SweepMode = Single | Multi


class SweepState(enum.Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    CHECKED_OUT = "checked_out"
    EXECUTING = "executing"
    RECORDED = "recorded"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


# ---------------------------------------------------------------------------
# SweepController
# ---------------------------------------------------------------------------


class SweepController:
    """Drives resolver, checkout, executor and store across a sweep.

    Usage::

        controller = SweepController(config, store, resolver, checkout,
                                     executor, work_dir, Multi(start, end))
        run_ids = controller.run()
    """

    def __init__(
        self,
        config: BenchConfig,
        store: ResultStore,
        resolver: CommitResolver,
        checkout: CheckoutManager,
        executor: JobExecutor,
        work_dir: Path,
        mode: SweepMode,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if isinstance(mode, Multi) and mode.start > mode.end:
            raise UsageError(
                f"Start date {format_timestamp(mode.start)} is after "
                f"end date {format_timestamp(mode.end)}"
            )
        work_dir = Path(work_dir).resolve()
        src_dir = checkout.repo_dir.resolve()
        if work_dir == src_dir or work_dir in src_dir.parents:
            raise UsageError(
                f"Work directory {work_dir} contains the source checkout {src_dir}"
            )

        self.config = config
        self.store = store
        self.resolver = resolver
        self.checkout = checkout
        self.executor = executor
        self.work_dir = work_dir
        self.mode = mode
        self.clock = clock
        self.state = SweepState.IDLE

    def targets(self, started: int) -> list[int]:
        """The point in time each iteration benchmarks for."""
        if isinstance(self.mode, Multi):
            return list(range(self.mode.start, self.mode.end + 1, DAY_SECONDS))
        if self.mode.date is not None:
            return [self.mode.date]
        return [started]

    def run(self) -> list[int]:
        """Execute the sweep and return the recorded run ids."""
        started = int(self.clock())
        self.checkout.validate()
        self.checkout.sync()

        targets = self.targets(started)
        log.info(
            "Starting sweep of %d iteration(s) at %s", len(targets), format_timestamp(started)
        )
        run_ids: list[int] = []
        for index, target in enumerate(targets):
            run_ids.append(self._iterate(target, started))
            last = index == len(targets) - 1
            self.state = SweepState.DONE if last else SweepState.IDLE
        return run_ids

    def _resolve(self, target: int) -> tuple[CommitRef, bool]:
        if isinstance(self.mode, Single) and self.mode.revision:
            return self.resolver.resolve_by_id(self.mode.revision), False
        return self.resolver.resolve_by_date(target), True

    def _iterate(self, target: int, started: int) -> int:
        self.state = SweepState.RESOLVING
        ref, primary = self._resolve(target)
        log.info(
            "Benchmarking %s (committed %s) for %s",
            ref.short,
            format_timestamp(ref.commit_date),
            format_timestamp(target),
        )

        self.checkout.checkout(ref.commit_id)
        self.state = SweepState.CHECKED_OUT

        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BenchIOError(f"Failed to create work directory {self.work_dir}: {exc}") from exc

        run_id = self.store.record_run(
            Run(
                run_date=target,
                sweep_started=started,
                commit_id=ref.commit_id,
                commit_date=ref.commit_date,
                was_primary_line=primary,
            )
        )

        run_log = RunLogAdapter(log, run_id, ref.commit_id)
        self.state = SweepState.EXECUTING
        jobs = substitute_jobs(self.config.jobs, logical_cpu_count(), self.work_dir)
        self.executor.run_jobs(jobs, run_id)
        self.state = SweepState.RECORDED
        run_log.info("All jobs complete")

        if self.config.cleanup:
            self.state = SweepState.CLEANING_UP
            erase_work_dir(self.work_dir)
        return run_id
