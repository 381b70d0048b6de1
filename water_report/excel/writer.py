from __future__ import annotations

from pathlib import Path

import pandas as pd

from ..models.section import ReportState
from ..services.layout import display_value
from ..services.table_binding import SectionTableBinding

"""Weekly report workbook export.

Sheet layout (same as the import side reads it):
- row 1: title (week commencing ...)
- row 2: header (``Row`` + column labels)
- row 3+: one line per row label

Additional sheets: ``Notes`` (column ``Note``) and ``Technicians``
(``Section`` / ``Name``). Signatures are exported as a "[signed]" marker only.
"""

__all__ = [
    "ROW_HEADER",
    "NOTES_SHEET",
    "TECHNICIANS_SHEET",
    "sheet_name",
    "write_report_workbook",
]

ROW_HEADER = "Row"
NOTES_SHEET = "Notes"
TECHNICIANS_SHEET = "Technicians"
NOTES_SECTION_LABEL = "Notes"

_INVALID_SHEET_CHARS = str.maketrans({c: "_" for c in "[]:*?/\\"})


def sheet_name(title: str) -> str:
    """Excel sheet name for a section title (31 chars max, no []:*?/\\)."""
    return title.translate(_INVALID_SHEET_CHARS)[:31]


def _section_rows(binding: SectionTableBinding, title: str) -> list[list[object]]:
    columns = list(binding.section.column_labels)
    rows: list[list[object]] = [[title], [ROW_HEADER, *columns]]
    for cells in binding.cells(narrow=False):
        rows.append([cells[0].row_label, *[display_value(c) for c in cells]])
    return rows


def write_report_workbook(
    path: Path,
    state: ReportState,
    bindings: dict[str, SectionTableBinding],
) -> Path:
    """Write every section, the notes and the technician names to ``path``."""
    title = f"{state.config.plant_name} - {state.week_label}"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for collection, section in state.sections.items():
            binding = bindings[collection]
            df = pd.DataFrame(_section_rows(binding, title))
            df.to_excel(writer, sheet_name=sheet_name(section.title), header=False, index=False)

        notes_rows: list[list[object]] = [[title], ["Note"]]
        notes_rows.extend([str(n)] for n in state.notes)
        pd.DataFrame(notes_rows).to_excel(writer, sheet_name=NOTES_SHEET, header=False, index=False)

        tech_rows: list[list[object]] = [[title], ["Section", "Name"]]
        for collection, info in state.technicians.items():
            tech_rows.append([state.section(collection).title, info.name])
        tech_rows.append([NOTES_SECTION_LABEL, state.note_author.name])
        pd.DataFrame(tech_rows).to_excel(writer, sheet_name=TECHNICIANS_SHEET, header=False, index=False)
    return path
