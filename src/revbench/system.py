"""Platform capabilities and host checks.

Resolves, once at startup, which resource-accounting binary to use on
this platform, how many logical CPUs the host has, and whether every
binary the configuration needs is on ``PATH``.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Iterable

from revbench.errors import UnavailableError

log = logging.getLogger("revbench")


# ---------------------------------------------------------------------------
# Instrumentation binary lookup
# ---------------------------------------------------------------------------

# GNU time lives at /usr/bin/time on Linux; Homebrew installs it as gtime.
TIME_BINARIES: dict[str, str] = {
    "linux": "/usr/bin/time",
    "darwin": "/usr/local/bin/gtime",
}


def time_binary(platform: str | None = None) -> str:
    """Return the GNU time binary path for *platform* (default: this host).

    Raises:
        UnavailableError: If the platform has no known GNU time binary.
    """
    platform = platform or sys.platform
    try:
        return TIME_BINARIES[platform]
    except KeyError:
        raise UnavailableError(
            f"No GNU time binary known for platform {platform!r}; "
            f"supported: {', '.join(sorted(TIME_BINARIES))}"
        ) from None


# ---------------------------------------------------------------------------
# Host facts
# ---------------------------------------------------------------------------


def logical_cpu_count() -> int:
    """Number of logical CPUs, used for the ``{cores}`` token."""
    count = os.cpu_count()
    if not count:
        log.warning("Could not determine CPU count, assuming 1")
        return 1
    return count


def check_binaries(binaries: Iterable[str]) -> None:
    """Verify every binary is on ``PATH`` (absolute paths are checked as-is).

    Raises:
        UnavailableError: Naming every missing binary.
    """
    missing: list[str] = []
    for prog in binaries:
        if shutil.which(prog) is None:
            log.warning("%s not found on PATH", prog)
            missing.append(prog)
        else:
            log.debug("Found %s binary on PATH", prog)

    if missing:
        raise UnavailableError(
            f"Could not find required binaries on PATH: {', '.join(missing)}"
        )
