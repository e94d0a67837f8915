"""Benchmark configuration and job definition loading.

Handles:
- Loading the configuration from TOML or YAML files.
- Building immutable job definitions, with the instrumented/raw choice
  resolved once per job.
- Validating the final configuration before any sweep starts.
- Substituting ``{cores}`` and ``{datadir}`` into job templates.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from revbench.errors import ConfigError, UsageError

log = logging.getLogger("revbench")

CORES_TOKEN = "{cores}"
DATADIR_TOKEN = "{datadir}"

DEFAULT_CHECK_FILE = "src/init.cpp"
DEFAULT_MAIN_BRANCH = "master"


# ---------------------------------------------------------------------------
# Job definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Instrumented:
    """Job runs under GNU time, which writes its report to *report_path*."""

    report_path: Path


@dataclass(frozen=True)
class Raw:
    """Job runs directly; no report is produced or stored."""


JobMode = Instrumented | Raw


@dataclass(frozen=True)
class JobDef:
    """One named, configured command."""

    name: str
    command: str
    mode: JobMode = field(default_factory=Raw)
    args: str = ""
    env: tuple[str, ...] = ()

    @property
    def instrumented(self) -> bool:
        return isinstance(self.mode, Instrumented)

    @property
    def argv(self) -> list[str]:
        """The command and extra args split on whitespace."""
        return self.command.split() + self.args.split()

    def substitute(self, cores: int, datadir: Path) -> JobDef:
        """Return a copy with ``{cores}`` and ``{datadir}`` filled in."""

        def fill(text: str) -> str:
            return text.replace(CORES_TOKEN, str(cores)).replace(
                DATADIR_TOKEN, str(datadir)
            )

        return replace(self, command=fill(self.command), args=fill(self.args))


def substitute_jobs(jobs: tuple[JobDef, ...], cores: int, datadir: Path) -> tuple[JobDef, ...]:
    """Fill substitution tokens for one sweep iteration.

    The originals are left untouched; the returned snapshot is what the
    executor runs.
    """
    datadir = Path(datadir).resolve()
    return tuple(job.substitute(cores, datadir) for job in jobs)


# ---------------------------------------------------------------------------
# BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class BenchConfig:
    """Resolved configuration for a sweep."""

    jobs: tuple[JobDef, ...] = ()
    binaries: list[str] = field(default_factory=lambda: ["git"])
    check_file: str = DEFAULT_CHECK_FILE
    main_branch: str = DEFAULT_MAIN_BRANCH
    cleanup: bool = False

    @property
    def has_instrumented_jobs(self) -> bool:
        return any(job.instrumented for job in self.jobs)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a configuration.  An empty list means valid."""
    errors: list[ValidationError] = []

    if not config.jobs:
        errors.append(
            ValidationError(field="jobs", message="No jobs defined.", severity="warning")
        )

    seen: set[str] = set()
    for index, job in enumerate(config.jobs):
        where = f"jobs[{index}]"
        if not job.name or not job.name.strip():
            errors.append(ValidationError(field=where, message="Job names must be non-empty."))
        elif job.name in seen:
            errors.append(
                ValidationError(field=where, message=f"Duplicate job name {job.name!r}.")
            )
        seen.add(job.name)

        if not job.command.strip():
            errors.append(
                ValidationError(
                    field=f"{where}.command",
                    message=f"Job {job.name!r} has an empty command.",
                )
            )

    if config.jobs and not config.has_instrumented_jobs:
        errors.append(
            ValidationError(
                field="jobs",
                message="No job has bench = true; nothing will be recorded.",
                severity="warning",
            )
        )

    if not config.main_branch.strip():
        errors.append(ValidationError(field="settings.main_branch", message="Empty branch name."))

    return errors


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a TOML (``.toml``) or YAML (``.yaml``/``.yml``) config file."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        import yaml

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    else:
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping, got {type(data).__name__}")
    return data


def _job_from_dict(index: int, data: Any) -> JobDef:
    if not isinstance(data, dict):
        raise ConfigError(f"jobs[{index}] must be a mapping, got {type(data).__name__}")
    try:
        name = str(data["name"])
        command = str(data["command"])
    except KeyError as exc:
        raise ConfigError(f"jobs[{index}] is missing required key {exc.args[0]!r}") from None

    env = data.get("env") or []
    if not isinstance(env, list):
        raise ConfigError(f"jobs[{index}].env must be a list of KEY=VALUE strings")

    mode: JobMode
    if data.get("bench", True):
        mode = Instrumented(report_path=Path(data.get("outfile") or f"{name}-results.txt"))
    else:
        mode = Raw()

    return JobDef(
        name=name,
        command=command,
        mode=mode,
        args=str(data.get("args") or ""),
        env=tuple(str(e) for e in env),
    )


def config_from_dict(data: dict[str, Any]) -> BenchConfig:
    """Build a BenchConfig from a parsed config mapping."""
    settings = data.get("settings") or {}
    jobs_section = data.get("jobs") or {}
    if not isinstance(settings, dict) or not isinstance(jobs_section, dict):
        raise ConfigError("'settings' and 'jobs' must be tables")

    jobs_data = jobs_section.get("jobs") or []
    if not isinstance(jobs_data, list):
        raise ConfigError("'jobs.jobs' must be a list of job tables")

    config = BenchConfig(
        jobs=tuple(_job_from_dict(i, j) for i, j in enumerate(jobs_data)),
        binaries=list(settings.get("binaries", ["git"])),
        check_file=settings.get("check_file", DEFAULT_CHECK_FILE),
        main_branch=settings.get("main_branch", DEFAULT_MAIN_BRANCH),
        cleanup=bool(jobs_section.get("cleanup", False)),
    )
    return config


def load_config(path: Path) -> BenchConfig:
    """Load, build and validate the configuration at *path*.

    Warnings are logged; any error-severity entry raises ConfigError.
    """
    config = config_from_dict(read_config_file(path))

    errors = validate_config(config)
    for w in (e for e in errors if e.severity == "warning"):
        log.warning("Config warning: %s: %s", w.field, w.message)
    fatal = [e for e in errors if e.severity == "error"]
    if fatal:
        messages = [f"  {e.field}: {e.message}" for e in fatal]
        summary = f"Invalid configuration in {path}:\n" + "\n".join(messages)
        # An empty job command is a usage error, as when the executor meets one.
        if all(e.field.endswith(".command") for e in fatal):
            raise UsageError(summary)
        raise ConfigError(summary)

    log.debug("Using configuration: %s", config)
    return config
