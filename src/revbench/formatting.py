"""Text formatting helpers for the ``show`` command.

Durations, aligned tables and sparklines for terminal output.
"""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Examples: ``'8.21s'``, ``'1m 23s'``, ``'1h 12m 34s'``.  Sub-minute
    values keep two decimals; longer ones are truncated to whole seconds.
    """
    if seconds < 60:
        return f"{seconds:.2f}s"
    total = int(seconds)
    if total >= 3600:
        h = total // 3600
        m = (total % 3600) // 60
        s = total % 60
        return f"{h}h {m:2d}m {s:2d}s"
    m = total // 60
    s = total % 60
    return f"{m}m {s:2d}s"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    indent: int = 2,
) -> str:
    """Format a list of rows as an aligned text table.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'`` or ``'r'``.
        indent: Number of leading spaces per line.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))

    padded_rows = [(list(row) + [""] * ncols)[:ncols] for row in rows]
    widths = [len(h) for h in headers]
    for row in padded_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    def _line(cells: list[str]) -> str:
        parts = [
            cell.rjust(widths[i]) if aligns[i] == "r" else cell.ljust(widths[i])
            for i, cell in enumerate(cells)
        ]
        return (" " * indent + "  ".join(parts)).rstrip()

    lines = [_line(list(headers))]
    lines.extend(_line(row) for row in padded_rows)
    return "\n".join(lines)


_SPARK_CHARS = "▁▂▃▄▅▆▇█"


def format_sparkline(values: list[float], width: int = 20) -> str:
    """Format a series of values as a sparkline using block characters.

    Series longer than *width* are resampled; shorter ones are drawn one
    character per value.
    """
    if not values:
        return ""

    if len(values) > width:
        step = len(values) / width
        sampled = [values[int(i * step)] for i in range(width)]
    else:
        sampled = list(values)

    lo = min(sampled)
    span = max(sampled) - lo

    result: list[str] = []
    for v in sampled:
        if span == 0:
            idx = len(_SPARK_CHARS) // 2
        else:
            idx = int((v - lo) / span * (len(_SPARK_CHARS) - 1))
        result.append(_SPARK_CHARS[max(0, min(idx, len(_SPARK_CHARS) - 1))])
    return "".join(result)


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    """Truncate text to *max_len*, adding *suffix* if truncated."""
    if len(text) <= max_len:
        return text
    if max_len <= len(suffix):
        return suffix[:max_len]
    return text[: max_len - len(suffix)] + suffix
