"""Command-line interface for revbench.

Subcommands:
    revbench bench once      Benchmark one revision (or the last one before a date)
    revbench bench daily     Benchmark one revision per day over a date range
    revbench graph generate  Render elapsed-time charts per job
    revbench show            Print stored results
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

import click

from revbench import __version__
from revbench.config import load_config
from revbench.errors import RevbenchError, UsageError
from revbench.executor import JobExecutor
from revbench.git import CheckoutManager, CommitResolver, format_timestamp
from revbench.logging import get_logger, setup_logging
from revbench.store import ResultStore
from revbench.sweep import Multi, Single, SweepController, SweepMode, parse_date
from revbench.system import check_binaries, time_binary

log = get_logger("cli")


def default_data_dir() -> Path:
    return Path.home() / ".config" / "revbench"


@dataclass
class CliContext:
    """Options shared by every subcommand."""

    config_file: Path
    bench_data_dir: Path
    db_name: str
    work_dir: Path | None

    @property
    def log_dir(self) -> Path:
        """Job logs, one tree per database so run ids never clash."""
        return self.bench_data_dir / "logs" / self.db_name

    def open_store(self) -> ResultStore:
        return ResultStore.open(self.bench_data_dir, self.db_name)


class RevbenchGroup(click.Group):
    """Group that turns any RevbenchError into a message and exit code."""

    def invoke(self, ctx: click.Context) -> object:
        try:
            return super().invoke(ctx)
        except RevbenchError as exc:
            log.debug("Aborting", exc_info=True)
            click.echo(f"Error: {exc}", err=True)
            ctx.exit(exc.exit_code)


@click.group(cls=RevbenchGroup)
@click.version_option(version=__version__)
@click.option(
    "--config-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (TOML or YAML). Default: ./config.toml.",
)
@click.option(
    "--bench-data-dir",
    type=click.Path(path_type=Path),
    envvar="REVBENCH_DIR",
    default=default_data_dir,
    show_default="~/.config/revbench",
    help="Directory holding the results database and job logs.",
)
@click.option("--db-name", default="db.sqlite", show_default=True, help="Database file name.")
@click.option(
    "--work-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Data directory for the jobs ({datadir}). Default: a fresh temp dir.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
@click.pass_context
def main(
    ctx: click.Context,
    config_file: Path | None,
    bench_data_dir: Path,
    db_name: str,
    work_dir: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """revbench: benchmark jobs against historical revisions of a git tree."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    ctx.obj = CliContext(
        config_file=config_file or Path.cwd() / "config.toml",
        bench_data_dir=bench_data_dir,
        db_name=db_name,
        work_dir=work_dir,
    )


# ---------------------------------------------------------------------------
# bench
# ---------------------------------------------------------------------------


def _run_sweep(obj: CliContext, src_dir: Path, mode: SweepMode) -> list[int]:
    config = load_config(obj.config_file)

    binaries = list(config.binaries)
    time_bin = ""
    if config.has_instrumented_jobs:
        time_bin = time_binary()
        binaries.append(time_bin)
    check_binaries(dict.fromkeys(binaries))

    work_dir = obj.work_dir or Path(tempfile.mkdtemp(prefix="revbench-"))
    log.info("Job data directory set to %s", work_dir)
    log.info("Bench data directory set to %s", obj.bench_data_dir)

    with obj.open_store() as store:
        controller = SweepController(
            config,
            store,
            CommitResolver(src_dir, config.main_branch),
            CheckoutManager(src_dir, config.check_file),
            JobExecutor(store, src_dir, obj.log_dir, time_bin),
            work_dir,
            mode,
        )
        return controller.run()


@main.group()
def bench() -> None:
    """Run benchmarks."""


@bench.command()
@click.argument("src_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--commit", default=None, help="Revision to benchmark.")
@click.option("--date", "date_str", default=None, help="Benchmark the last commit before YYYY-MM-DD.")
@click.pass_obj
def once(obj: CliContext, src_dir: Path, commit: str | None, date_str: str | None) -> None:
    """Benchmark a single revision of the tree in SRC_DIR.

    Without --commit or --date, the latest main-line commit is used.
    """
    if commit and date_str:
        raise UsageError("--commit and --date are mutually exclusive")
    mode = Single(revision=commit, date=parse_date(date_str) if date_str else None)
    run_ids = _run_sweep(obj, src_dir, mode)
    click.echo(f"Recorded run {run_ids[0]}")


@bench.command()
@click.argument("src_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("start")
@click.argument("end")
@click.pass_obj
def daily(obj: CliContext, src_dir: Path, start: str, end: str) -> None:
    """Benchmark one revision per day from START to END (YYYY-MM-DD, inclusive)."""
    mode = Multi(start=parse_date(start), end=parse_date(end))
    run_ids = _run_sweep(obj, src_dir, mode)
    click.echo(f"Recorded {len(run_ids)} run(s): {', '.join(map(str, run_ids))}")


# ---------------------------------------------------------------------------
# graph
# ---------------------------------------------------------------------------


@main.group()
def graph() -> None:
    """Chart stored results."""


@graph.command()
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Where to write PNGs. Default: <bench-data-dir>/graphs.",
)
@click.pass_obj
def generate(obj: CliContext, output_dir: Path | None) -> None:
    """Render one elapsed-time chart per job."""
    from revbench.graph import plot_job_metrics

    output_dir = output_dir or obj.bench_data_dir / "graphs"
    with obj.open_store() as store:
        paths = plot_job_metrics(store, output_dir)
    if not paths:
        click.echo("No results to plot.")
        return
    for path in paths:
        click.echo(str(path))


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


@main.command()
@click.argument("job_name", required=False)
@click.pass_obj
def show(obj: CliContext, job_name: str | None) -> None:
    """Print stored results, for all jobs or for JOB_NAME."""
    from revbench.formatting import format_duration, format_sparkline, format_table, truncate

    with obj.open_store() as store:
        if job_name is None:
            rows = []
            for name in store.get_job_names():
                results = store.get_jobs_by_name(name)
                elapsed = [job.report.elapsed_time for job, _ in results]
                rows.append(
                    [
                        name,
                        str(len(results)),
                        format_duration(elapsed[-1]),
                        format_sparkline(elapsed),
                    ]
                )
            if not rows:
                click.echo("No results recorded yet.")
                return
            click.echo(
                format_table(
                    ["Job", "Runs", "Latest", "Elapsed trend"],
                    rows,
                    alignments=["l", "r", "r", "l"],
                )
            )
            return

        results = store.get_jobs_by_name(job_name)
        if not results:
            raise UsageError(f"No results for job {job_name!r}")
        table_rows = [
            [
                str(run.run_id),
                format_timestamp(run.run_date)[:10],
                run.commit_id[:10],
                format_duration(job.report.elapsed_time),
                f"{job.report.user_time:.2f}",
                f"{job.report.system_time:.2f}",
                f"{job.report.percent_of_cpu}%",
                str(job.report.max_resident_set_size_kb),
                truncate(job.report.command, 40),
            ]
            for job, run in results
        ]
    click.echo(
        format_table(
            ["Run", "Date", "Commit", "Elapsed", "User", "Sys", "CPU", "Max RSS KB", "Command"],
            table_rows,
            alignments=["r", "l", "l", "r", "r", "r", "r", "r", "l"],
        )
    )
