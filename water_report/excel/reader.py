from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row import CLOSING_STOCK, CONSUMPTION, DAY, SIGNATURE
from ..models.section import ReportState
from ..services.form_controller import FormController
from ..services.layout import SIGNED, UNSIGNED
from .writer import NOTES_SECTION_LABEL, NOTES_SHEET, ROW_HEADER, TECHNICIANS_SHEET, sheet_name

"""Weekly report workbook import.

The first row of each sheet is a title and is ignored, the second row is the
header, data starts on the third row. Values are applied through the section
bindings (handle_change / set_day), so derived columns are recomputed exactly
as for an interactive edit.
"""

__all__ = [
    "SheetHeaderError",
    "MissingColumnsError",
    "SheetData",
    "ReportDraft",
    "read_excel_file",
    "normalize_sheet",
    "read_report_workbook",
    "apply_report_draft",
]

logger = logging.getLogger(__name__)


class SheetHeaderError(Exception):
    """Raised when header row (2nd line) is missing or invalid."""


class MissingColumnsError(Exception):
    """Raised when expected columns are missing in sheet header."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, Any]]  # 正規化済 (列名→値)


@dataclass
class ReportDraft:
    """Values read from a workbook, keyed by section collection."""
    edits: dict[str, list[tuple[int, dict[str, Any]]]] = field(default_factory=dict)
    notes: list[str] | None = None
    technicians: dict[str, str] = field(default_factory=dict)
    note_name: str | None = None


def read_excel_file(path: Path, target_sheets: Iterable[str] | None = None) -> dict[str, pd.DataFrame]:
    """Read a workbook returning raw (headerless) DataFrames keyed by sheet name."""
    targets = set(target_sheets) if target_sheets is not None else None
    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if targets is not None and str(name) not in targets:
                continue
            # ヘッダなしで生読み (後で2行目をヘッダとして適用)
            dfs[str(name)] = xls.parse(name, header=None)
    return dfs


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    expected_columns: set[str] | None = None,
) -> SheetData:
    """Normalize a raw DataFrame using second row as header.

    Fully empty data lines are skipped; empty cells become None.
    """
    if df.shape[0] < 2:
        raise SheetHeaderError(f"sheet '{sheet_name}' lacks second row header")
    columns = [str(c).strip() for c in df.iloc[1].tolist()]
    rows: list[dict[str, Any]] = []
    for _, raw in df.iloc[2:].iterrows():
        if raw.isna().all():
            continue
        row_dict: dict[str, Any] = {}
        for col, val in zip(columns, raw.tolist(), strict=False):
            if pd.isna(val):
                row_dict[col] = None
            elif isinstance(val, str):
                stripped = val.strip()
                row_dict[col] = stripped if stripped else None
            else:
                row_dict[col] = val
        rows.append(row_dict)

    if expected_columns is not None:
        missing = expected_columns - set(columns)
        if missing:
            raise MissingColumnsError(f"sheet '{sheet_name}' missing columns: {sorted(missing)}")

    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)


def _cell_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _cell_date(value: Any) -> date | None:
    if isinstance(value, datetime):  # pandas Timestamp も datetime のサブクラス
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%d/%m/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    logger.warning("unparseable date %r ignored", value)
    return None


def read_report_workbook(path: Path, state: ReportState) -> ReportDraft:
    """Read the section, notes and technician sheets of a report workbook."""
    by_sheet = {sheet_name(s.title): s for s in state.sections.values()}
    raw = read_excel_file(path, target_sheets=[*by_sheet, NOTES_SHEET, TECHNICIANS_SHEET])
    draft = ReportDraft()

    for name, section in by_sheet.items():
        if name not in raw:
            logger.info("sheet '%s' not in workbook; section %s unchanged", name, section.collection)
            continue
        data = normalize_sheet(raw[name], name, expected_columns={ROW_HEADER})
        label_index = {label: i for i, label in enumerate(section.row_labels)}
        edits: list[tuple[int, dict[str, Any]]] = []
        for position, line in enumerate(data.rows):
            label = line.get(ROW_HEADER)
            index = label_index.get(str(label)) if label is not None else None
            if index is None:
                if not section.uses_generated_ids:
                    logger.warning("sheet '%s': unknown row label %r skipped", name, label)
                    continue
                index = position
            values = {
                col: value
                for col, value in line.items()
                if col in section.column_labels
                and col not in (CONSUMPTION, SIGNATURE)
                and value is not None
                and value not in (SIGNED, UNSIGNED)
            }
            if values:
                edits.append((index, values))
        draft.edits[section.collection] = edits

    if NOTES_SHEET in raw:
        notes = normalize_sheet(raw[NOTES_SHEET], NOTES_SHEET, expected_columns={"Note"})
        draft.notes = [_cell_text(r["Note"]) for r in notes.rows if r.get("Note") is not None]

    if TECHNICIANS_SHEET in raw:
        techs = normalize_sheet(raw[TECHNICIANS_SHEET], TECHNICIANS_SHEET, expected_columns={"Section", "Name"})
        by_title = {s.title: c for c, s in state.sections.items()}
        for r in techs.rows:
            title, name = r.get("Section"), r.get("Name")
            if name is None:
                continue
            if title == NOTES_SECTION_LABEL:
                draft.note_name = _cell_text(name)
            elif title in by_title and by_title[title] in state.technicians:
                draft.technicians[by_title[title]] = _cell_text(name)
    return draft


def apply_report_draft(controller: FormController, draft: ReportDraft) -> int:
    """Apply a draft through the bindings; returns the number of edited cells."""
    edited = 0
    for collection, edits in draft.edits.items():
        binding = controller.binding(collection)
        for index, values in edits:
            # Opening を Closing より先に反映 (派生列の再計算順序)
            for column in sorted(values, key=lambda c: c == CLOSING_STOCK):
                value = values[column]
                if column == DAY and binding.section.uses_generated_ids:
                    binding.set_day(index, _cell_date(value))
                else:
                    binding.handle_change(index, column, _cell_text(value))
                edited += 1
    for collection, name in draft.technicians.items():
        controller.set_technician_name(collection, name)
    if draft.notes is not None:
        controller.set_notes(draft.notes)
    if draft.note_name is not None:
        controller.set_note_name(draft.note_name)
    return edited
