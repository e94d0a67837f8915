"""Error taxonomy for revbench.

Core modules only raise these; the CLI has a single top-level handler
that logs the message and exits with the error's ``exit_code``.  Codes
follow BSD ``sysexits.h``.
"""

from __future__ import annotations

from pathlib import Path

EX_USAGE = 64
EX_DATAERR = 65
EX_NOINPUT = 66
EX_UNAVAILABLE = 69
EX_SOFTWARE = 70
EX_CANTCREAT = 73
EX_CONFIG = 78


class RevbenchError(Exception):
    """Base class for every error revbench reports to the user."""

    exit_code: int = EX_SOFTWARE


class UsageError(RevbenchError):
    """The caller's input is wrong: bad date, bad revision, empty command."""

    exit_code = EX_USAGE


class NotFoundError(UsageError):
    """No commit matches the requested date or revision."""


class ConfigError(RevbenchError):
    """The configuration file is missing, malformed, or invalid."""

    exit_code = EX_CONFIG


class UnavailableError(RevbenchError):
    """A required external binary is not available."""

    exit_code = EX_UNAVAILABLE


class BenchIOError(RevbenchError):
    """A directory, log, report or database file could not be created or read."""

    exit_code = EX_CANTCREAT


class GitError(RevbenchError):
    """A git command that must succeed (fetch, checkout) failed."""

    exit_code = EX_SOFTWARE


class JobFailedError(RevbenchError):
    """A job process exited with a nonzero status."""

    exit_code = EX_SOFTWARE

    def __init__(self, job_name: str, returncode: int, stderr_path: Path) -> None:
        self.job_name = job_name
        self.returncode = returncode
        self.stderr_path = stderr_path
        super().__init__(
            f"Job {job_name!r} failed with exit status {returncode}, "
            f"see '{stderr_path}' for details"
        )


class DecodeError(RevbenchError):
    """A time report line for a known label could not be parsed."""

    exit_code = EX_DATAERR


class IntegrityError(RevbenchError):
    """A job result references a run that does not exist."""

    exit_code = EX_SOFTWARE
