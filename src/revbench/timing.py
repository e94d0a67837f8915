"""Decoding of GNU ``time -v`` reports.

GNU time in verbose mode writes one ``Label: value`` pair per line::

    Command being timed: "make -j8"
    User time (seconds): 812.44
    System time (seconds): 61.02
    Percent of CPU this job got: 745%
    Elapsed (wall clock) time (h:mm:ss or m:ss): 1:57.21
    Maximum resident set size (kbytes): 1048576
    ...
    Exit status: 0

Unknown labels are ignored so newer GNU time versions keep working.  A
value that fails to parse for a known label makes the whole report
unreadable: a half-populated metrics row is worse than a visible error.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from revbench.errors import BenchIOError, DecodeError
from revbench.logging import get_logger

log = get_logger("timing")

_SEPARATOR = ": "


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------


def parse_elapsed(value: str) -> float:
    """Convert ``H:MM:SS.ss`` or ``M:SS.ss`` into seconds.

    >>> parse_elapsed("1:02:03.45")
    3723.45
    >>> parse_elapsed("2:03.40")
    123.4

    Raises:
        ValueError: If the value does not have 2 or 3 colon-delimited
            components, any component is not an unsigned number, or the
            minutes or seconds are 60 or more.
    """
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"expected h:mm:ss or m:ss, got {value!r}")

    *head, last = parts
    secs_str, _, frac_str = last.partition(".")
    for component in (*head, secs_str):
        if not (component.isascii() and component.isdigit()):
            raise ValueError(f"bad component {component!r} in {value!r}")
    if frac_str and not (frac_str.isascii() and frac_str.isdigit()):
        raise ValueError(f"bad fractional seconds in {value!r}")

    hours = int(head[0]) if len(head) == 2 else 0
    minutes = int(head[-1])
    seconds = int(secs_str)
    if minutes >= 60 or seconds >= 60:
        raise ValueError(f"minutes and seconds must be below 60, got {value!r}")
    fraction = float(f"0.{frac_str}") if frac_str else 0.0
    return hours * 3600 + minutes * 60 + seconds + fraction


def _parse_command(value: str) -> str:
    command = value.strip().strip("\"'")
    if not command:
        raise ValueError("empty command")
    return command


def _parse_percent(value: str) -> int:
    stripped = value.strip().removesuffix("%")
    # GNU time prints "?%" when the elapsed time rounds to zero.
    if stripped == "?":
        return 0
    return int(stripped)


# Label -> (field name, parser).  Labels are exactly as GNU time prints them.
_LABELS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "Command being timed": ("command", _parse_command),
    "User time (seconds)": ("user_time", float),
    "System time (seconds)": ("system_time", float),
    "Percent of CPU this job got": ("percent_of_cpu", _parse_percent),
    "Elapsed (wall clock) time (h:mm:ss or m:ss)": ("elapsed_time", parse_elapsed),
    "Maximum resident set size (kbytes)": ("max_resident_set_size_kb", int),
    "Major (requiring I/O) page faults": ("major_page_faults", int),
    "Minor (reclaiming a frame) page faults": ("minor_page_faults", int),
    "Voluntary context switches": ("voluntary_context_switches", int),
    "Involuntary context switches": ("involuntary_context_switches", int),
    "File system outputs": ("file_system_outputs", int),
    "Exit status": ("exit_status", int),
}

REQUIRED_FIELDS = frozenset(
    {"command", "user_time", "system_time", "elapsed_time", "exit_status"}
)

# Explicit defaults for fields whose report line may legitimately be absent.
OPTIONAL_DEFAULTS: dict[str, int] = {
    "percent_of_cpu": 0,
    "max_resident_set_size_kb": 0,
    "major_page_faults": 0,
    "minor_page_faults": 0,
    "voluntary_context_switches": 0,
    "involuntary_context_switches": 0,
    "file_system_outputs": 0,
}


# ---------------------------------------------------------------------------
# TimeReport
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeReport:
    """Resource usage of one job, decoded from a GNU time report."""

    command: str
    user_time: float
    system_time: float
    elapsed_time: float
    exit_status: int
    percent_of_cpu: int = 0
    max_resident_set_size_kb: int = 0
    major_page_faults: int = 0
    minor_page_faults: int = 0
    voluntary_context_switches: int = 0
    involuntary_context_switches: int = 0
    file_system_outputs: int = 0

    @property
    def cpu_time(self) -> float:
        """Total CPU time (user + system)."""
        return self.user_time + self.system_time

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_text(cls, text: str, *, source: str = "<report>") -> TimeReport:
        """Decode a report from its text.

        Raises:
            DecodeError: If a known label has an unparseable value, or a
                required label is missing.
        """
        values: dict[str, Any] = {}
        for raw_line in text.splitlines():
            line = raw_line.strip()
            label, sep, value = line.partition(_SEPARATOR)
            if not sep and line.endswith(":"):
                # Blank value: the trailing space went with strip().
                label, sep, value = line[:-1], ":", ""
            if not sep:
                continue
            label = label.strip()
            entry = _LABELS.get(label)
            if entry is None:
                log.debug("Ignoring unknown label %r in %s", label, source)
                continue
            field_name, parser = entry
            try:
                values[field_name] = parser(value)
            except ValueError as exc:
                raise DecodeError(
                    f"Cannot decode {label!r} value {value.strip()!r} in {source}: {exc}"
                ) from exc

        missing = sorted(REQUIRED_FIELDS - values.keys())
        if missing:
            raise DecodeError(f"Time report {source} is missing {', '.join(missing)}")

        for name, default in OPTIONAL_DEFAULTS.items():
            values.setdefault(name, default)
        return cls(**values)

    @classmethod
    def from_file(cls, path: Path) -> TimeReport:
        """Read and decode a report written by ``time -v --output=PATH``."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise BenchIOError(f"Cannot read time report {path}: {exc}") from exc
        return cls.from_text(text, source=str(path))
