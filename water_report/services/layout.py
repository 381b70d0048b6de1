from __future__ import annotations

from datetime import date
from typing import Any

import pandas as pd

from .table_binding import Cell, SectionTableBinding

"""Text rendering of a section for the terminal.

Wide mode prints the grid (row labels down, columns across); narrow mode prints a
stacked "label: value" list per row. Both render the same cells, so they show
the same values; read-only (derived) cells are marked with a trailing "*".
"""

__all__ = [
    "display_value",
    "section_frame",
    "render_section",
]

SIGNED = "[signed]"
UNSIGNED = "Sign"


def display_value(cell: Cell) -> str:
    value: Any = cell.value
    if cell.kind == "signature":
        return SIGNED if value else UNSIGNED
    if value is None or value == "":
        return ""
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def section_frame(binding: SectionTableBinding) -> pd.DataFrame:
    """Grid of display values indexed by row label."""
    grid = binding.cells(narrow=False)
    columns = list(binding.section.column_labels)
    data = [[display_value(c) for c in row] for row in grid]
    index = pd.Index([row[0].row_label for row in grid] if grid else [], name=binding.section.config.header or None)
    return pd.DataFrame(data, columns=columns, index=index)


def render_section(binding: SectionTableBinding, narrow: bool = False) -> str:
    section = binding.section
    lines = [f"== {section.title} ({section.collection})"]
    if not narrow:
        frame = section_frame(binding)
        frame.columns = [f"{c}*" if c == _read_only_column(binding) else c for c in frame.columns]
        lines.append(frame.to_string() if not frame.empty else "(no rows)")
        return "\n".join(lines)
    for row in binding.cells(narrow=True):
        if not row:
            continue
        lines.append(row[0].row_label)
        for cell in row:
            marker = "*" if cell.read_only else ""
            lines.append(f"  {cell.column}{marker}: {display_value(cell)}")
        lines.append("-" * 40)
    return "\n".join(lines)


def _read_only_column(binding: SectionTableBinding) -> str | None:
    for row in binding.cells(narrow=False):
        for cell in row:
            if cell.read_only:
                return cell.column
        break
    return None
