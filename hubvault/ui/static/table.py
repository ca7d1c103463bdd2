#!/usr/bin/env python3
# hubvault/ui/static/table.py
from __future__ import annotations

from typing import List, Optional, Sequence

from hubvault.ui.utils import strip_ansi


def _column_widths(rows: Sequence[Sequence[str]]) -> List[int]:
    """Compute visual widths ignoring ANSI sequences."""
    widths: List[int] = []
    for row in rows:
        for idx, cell in enumerate(row):
            size = len(strip_ansi(cell))
            if idx >= len(widths):
                widths.append(size)
            else:
                widths[idx] = max(widths[idx], size)
    return widths


def format_table(
    rows: Sequence[Sequence[object]],
    headers: Optional[Sequence[object]] = None,
    *,
    padding: int = 1,
) -> str:
    """Return a bordered ASCII table string (ANSI-safe width calculation)."""
    str_rows = [[str(cell) for cell in row] for row in rows]
    str_headers = [str(h) for h in headers] if headers is not None else None
    widths = _column_widths(([str_headers] if str_headers else []) + str_rows)
    if not widths:
        return ""

    pad = " " * padding

    def render_row(row: Sequence[str]) -> str:
        cells = list(row) + [""] * (len(widths) - len(row))
        parts = [
            f"{pad}{cell}{' ' * (widths[i] - len(strip_ansi(cell)))}{pad}"
            for i, cell in enumerate(cells)
        ]
        return "|" + "|".join(parts) + "|"

    rule = "-" * (sum(widths) + padding * 2 * len(widths) + len(widths) + 1)
    lines = [rule]
    if str_headers is not None:
        lines.append(render_row(str_headers))
        lines.append(render_row(["-" * w for w in widths]))
    lines.extend(render_row(row) for row in str_rows)
    lines.append(rule)
    return "\n".join(lines)
