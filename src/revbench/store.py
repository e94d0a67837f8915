"""SQLite result store.

Two append-only tables::

    runs  one row per sweep iteration (what was benchmarked, and when)
    jobs  one row per instrumented job per run, referencing runs.run_id

Foreign keys are enforced, so a job row can never point at a run that
was not recorded first.  Nothing is ever updated or deleted.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from revbench.errors import BenchIOError, IntegrityError
from revbench.logging import get_logger
from revbench.timing import TimeReport

log = get_logger("store")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS runs (
        run_id INTEGER PRIMARY KEY AUTOINCREMENT,
        run_date INTEGER NOT NULL,
        sweep_started INTEGER NOT NULL,
        commit_id TEXT NOT NULL,
        commit_date INTEGER NOT NULL,
        was_primary_line INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS jobs (
        job_id INTEGER PRIMARY KEY AUTOINCREMENT,
        run_id INTEGER NOT NULL REFERENCES runs(run_id),
        job_name TEXT NOT NULL,
        command TEXT NOT NULL,
        user_time REAL NOT NULL,
        system_time REAL NOT NULL,
        percent_of_cpu INTEGER NOT NULL,
        elapsed_time REAL NOT NULL,
        max_resident_set_size_kb INTEGER NOT NULL,
        major_page_faults INTEGER NOT NULL,
        minor_page_faults INTEGER NOT NULL,
        voluntary_context_switches INTEGER NOT NULL,
        involuntary_context_switches INTEGER NOT NULL,
        file_system_outputs INTEGER NOT NULL,
        exit_status INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS jobs_by_name ON jobs (job_name, run_id)",
)

_REPORT_COLUMNS = (
    "command",
    "user_time",
    "system_time",
    "percent_of_cpu",
    "elapsed_time",
    "max_resident_set_size_kb",
    "major_page_faults",
    "minor_page_faults",
    "voluntary_context_switches",
    "involuntary_context_switches",
    "file_system_outputs",
    "exit_status",
)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Run:
    """One sweep iteration.  ``run_id`` is None until recorded."""

    run_date: int
    commit_id: str
    commit_date: int
    was_primary_line: bool
    sweep_started: int = 0
    run_id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Run:
        return cls(
            run_id=row["run_id"],
            run_date=row["run_date"],
            sweep_started=row["sweep_started"],
            commit_id=row["commit_id"],
            commit_date=row["commit_date"],
            was_primary_line=bool(row["was_primary_line"]),
        )


@dataclass(frozen=True)
class JobRecord:
    """A stored job result."""

    job_id: int
    run_id: int
    job_name: str
    report: TimeReport

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> JobRecord:
        return cls(
            job_id=row["job_id"],
            run_id=row["run_id"],
            job_name=row["job_name"],
            report=TimeReport(**{col: row[col] for col in _REPORT_COLUMNS}),
        )


# ---------------------------------------------------------------------------
# ResultStore
# ---------------------------------------------------------------------------


class ResultStore:
    """Append-only persistence of runs and job results.

    Usage::

        with ResultStore.open(data_dir, "db.sqlite") as store:
            run_id = store.record_run(run)
            store.record_job(run_id, "make", report)
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        try:
            self._conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise BenchIOError(f"Failed to open database at '{self.db_path}': {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._create_tables()

    @classmethod
    def open(cls, data_dir: Path, db_name: str = "db.sqlite") -> ResultStore:
        """Create *data_dir* if needed and open ``data_dir/db_name``."""
        log.info("Using data directory %s with db name %s", data_dir, db_name)
        try:
            Path(data_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BenchIOError(f"Failed to create data directory '{data_dir}': {exc}") from exc
        return cls(Path(data_dir) / db_name)

    def _create_tables(self) -> None:
        with self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)
        log.debug("All required tables exist in %s", self.db_path)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> ResultStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- writes -------------------------------------------------------------

    def record_run(self, run: Run) -> int:
        """Insert *run* and return its new run id."""
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO runs (run_date, sweep_started, commit_id, commit_date, "
                "was_primary_line) VALUES (?, ?, ?, ?, ?)",
                (
                    run.run_date,
                    run.sweep_started,
                    run.commit_id,
                    run.commit_date,
                    int(run.was_primary_line),
                ),
            )
        run_id = cur.lastrowid
        assert run_id is not None
        log.debug(
            "Recorded run %d: commit %s (commit_date %d, run_date %d, primary %s)",
            run_id,
            run.commit_id,
            run.commit_date,
            run.run_date,
            run.was_primary_line,
        )
        return run_id

    def record_job(self, run_id: int, job_name: str, report: TimeReport) -> int:
        """Insert a job result for *run_id* and return its job id.

        Raises:
            IntegrityError: If *run_id* is not a recorded run.
        """
        columns = ("run_id", "job_name", *_REPORT_COLUMNS)
        values = (run_id, job_name, *(getattr(report, col) for col in _REPORT_COLUMNS))
        placeholders = ", ".join("?" for _ in columns)
        try:
            with self._conn:
                cur = self._conn.execute(
                    f"INSERT INTO jobs ({', '.join(columns)}) VALUES ({placeholders})",
                    values,
                )
        except sqlite3.IntegrityError as exc:
            raise IntegrityError(
                f"Cannot record job {job_name!r}: run {run_id} does not exist ({exc})"
            ) from exc
        job_id = cur.lastrowid
        assert job_id is not None
        log.debug("Recorded job %s for run %d: %s", job_name, run_id, report)
        return job_id

    # -- reads --------------------------------------------------------------

    def get_job_names(self) -> list[str]:
        """All distinct job names, alphabetically."""
        rows = self._conn.execute("SELECT DISTINCT job_name FROM jobs ORDER BY job_name")
        return [row["job_name"] for row in rows]

    def get_jobs_by_name(self, job_name: str) -> list[tuple[JobRecord, Run]]:
        """All results for *job_name* with their runs, oldest run first."""
        rows = self._conn.execute(
            """
            SELECT jobs.*, runs.run_date, runs.sweep_started, runs.commit_id,
                   runs.commit_date, runs.was_primary_line
            FROM jobs
            INNER JOIN runs ON jobs.run_id = runs.run_id
            WHERE jobs.job_name = ?
            ORDER BY jobs.run_id ASC, jobs.job_id ASC
            """,
            (job_name,),
        )
        return [(JobRecord.from_row(row), Run.from_row(row)) for row in rows]

    def get_runs(self) -> list[Run]:
        """All recorded runs, oldest first."""
        rows = self._conn.execute("SELECT * FROM runs ORDER BY run_id ASC")
        return [Run.from_row(row) for row in rows]

    def get_run(self, run_id: int) -> Run | None:
        row = self._conn.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,)).fetchone()
        return Run.from_row(row) if row is not None else None
