"""Elapsed-time charts, one PNG per job.

Reads every stored result of each job, oldest run first, and plots
elapsed wall time against the run's benchmarked date.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from revbench.errors import BenchIOError
from revbench.logging import get_logger
from revbench.store import ResultStore

log = get_logger("graph")

_FIGSIZE = (19.2, 10.8)  # 1920x1080 at 100 dpi


def chart_filename(job_name: str) -> str:
    """``./src/bitcoind -x`` -> ``src_bitcoind_-x.png``."""
    return job_name.replace("./", "").replace(" ", "_").replace("/", "_") + ".png"


def plot_job(store: ResultStore, job_name: str, output_dir: Path) -> Path | None:
    """Render the chart for *job_name*; returns None if it has no results."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.dates as mdates
    import matplotlib.pyplot as plt

    rows = store.get_jobs_by_name(job_name)
    log.debug("Got %d results from the database for %s", len(rows), job_name)
    if not rows:
        return None

    dates = [datetime.fromtimestamp(run.run_date, tz=timezone.utc) for _, run in rows]
    elapsed = [job.report.elapsed_time for job, _ in rows]

    fig, ax = plt.subplots(figsize=_FIGSIZE)
    try:
        ax.plot(dates, elapsed, marker="o", color="#e74c3c", linewidth=2, label="Elapsed Time")
        ax.set_title(f"Elapsed Time for {job_name}", fontsize=20, fontweight="bold")
        ax.set_xlabel("Benchmarked date", fontsize=14)
        ax.set_ylabel("Elapsed Time (s)", fontsize=14)
        ax.set_ylim(bottom=0)
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d"))
        ax.tick_params(axis="x", rotation=45)
        ax.grid(True, alpha=0.3)
        ax.legend(loc="upper left")
        fig.tight_layout()

        path = output_dir / chart_filename(job_name)
        fig.savefig(path, dpi=100)
    except OSError as exc:
        raise BenchIOError(f"Cannot write chart for {job_name!r}: {exc}") from exc
    finally:
        plt.close(fig)

    log.info("Plot for %s created at %s", job_name, path)
    return path


def plot_job_metrics(store: ResultStore, output_dir: Path) -> list[Path]:
    """Render one chart per stored job name into *output_dir*."""
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BenchIOError(f"Cannot create chart directory {output_dir}: {exc}") from exc

    paths: list[Path] = []
    for job_name in store.get_job_names():
        log.info("Starting graph for %s", job_name)
        path = plot_job(store, job_name, output_dir)
        if path is not None:
            paths.append(path)
    return paths
