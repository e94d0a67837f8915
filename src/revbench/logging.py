"""Logging setup for revbench.

A daily sweep can run for days, so console lines carry a wall-clock time,
and an optional file handler keeps a DEBUG trace (every git command and
every job spawn) even when the console is quiet.

Messages emitted while a run is in progress go through
:class:`RunLogAdapter`, which tags them with the run id and the commit
being benchmarked::

    12:04:31 INFO     [run 7 @ 3f2a9c1] Running job make: make -j16
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

_LOGGER_NAME = "revbench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
_CONSOLE_DATEFMT = "%H:%M:%S"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure the ``revbench`` logger for one CLI invocation.

    Args:
        verbose: Console shows DEBUG (git commands, decoded reports).
        quiet: Console shows only warnings and errors. Ignored if *verbose*.
        log_file: Also log everything at DEBUG to this file; its parent
            directories are created.

    Returns:
        The configured ``revbench`` logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Reconfiguring replaces, never stacks, handlers.
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console = logging.StreamHandler()
    if verbose:
        console.setLevel(logging.DEBUG)
    elif quiet:
        console.setLevel(logging.WARNING)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, _CONSOLE_DATEFMT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger under the revbench namespace."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")


class RunLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Prefix messages with ``[run N]`` or ``[run N @ <short commit>]``."""

    def __init__(self, logger: logging.Logger, run_id: int, commit_id: str | None = None) -> None:
        super().__init__(logger, {"run_id": run_id, "commit_id": commit_id})
        self.prefix = f"[run {run_id} @ {commit_id[:7]}]" if commit_id else f"[run {run_id}]"

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        msg, kwargs = super().process(msg, kwargs)
        return f"{self.prefix} {msg}", kwargs
