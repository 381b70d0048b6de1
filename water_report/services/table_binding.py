from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..db.document_store import Document, DocumentStore
from ..errors import DocumentStoreError, ReadOnlyFieldError, ReportBusyError
from ..models.row import (
    CLOSING_STOCK,
    CONSUMPTION,
    DAY,
    OPENING_STOCK,
    SIGNATURE,
    Row,
    compute_consumption,
    resolve_row_key,
    row_from_document,
    to_document_fields,
)
from ..models.section import Section
from .signature import SignatureSource, is_data_url, signature_data_url

"""Section table binding.

Binds one Section (a row/column grid) to its collection:

- fetch: list the collection, flatten each document, align rows to row labels
- edit: handle_change / set_day, with the derived Consumption (Kg) column
- signature capture: written through to the store immediately
- every mutation reports the full row set upward through ``update_data``
"""

__all__ = [
    "RESERVED_DOCUMENT_IDS",
    "Cell",
    "SectionTableBinding",
    "UpdateData",
    "align_rows",
]

logger = logging.getLogger(__name__)

# Singleton documents that share a collection with the rows
RESERVED_DOCUMENT_IDS = frozenset({"technicianInfo", "noteList", "signature"})

UpdateData = Callable[[str, list[Row]], None]


@dataclass(frozen=True)
class Cell:
    """One editable (or read-only) field as presented to the user."""
    row_index: int
    row_label: str
    column: str
    value: Any
    kind: str  # text / date / signature
    read_only: bool


def align_rows(rows: list[Row], row_labels: list[str]) -> list[Row]:
    """Place rows whose id equals a row label at that label's index.

    Rows keyed any other way fill the remaining free slots in fetch order.
    Interior gaps become empty rows; trailing gaps are dropped.
    """
    if not rows:
        return []
    slots: list[Row | None] = [None] * len(row_labels)
    label_index = {label: i for i, label in enumerate(row_labels)}
    leftovers: list[Row] = []
    for row in rows:
        idx = label_index.get(row.id) if row.id is not None else None
        if idx is not None and slots[idx] is None:
            slots[idx] = row
        else:
            leftovers.append(row)
    for row in leftovers:
        try:
            free = slots.index(None)
        except ValueError:
            slots.append(row)
            continue
        slots[free] = row
    while slots and slots[-1] is None:
        slots.pop()
    return [row if row is not None else Row() for row in slots]


class SectionTableBinding:
    """Generic grid bound to one section collection."""

    def __init__(
        self,
        section: Section,
        store: DocumentStore,
        update_data: UpdateData,
        *,
        is_busy: Callable[[], bool] | None = None,
        extra_fields: Mapping[str, Any] | None = None,
    ) -> None:
        self.section = section
        self.store = store
        self._update_data = update_data
        self._is_busy = is_busy or (lambda: False)
        # written into every stored document (plantName)
        self.extra_fields = dict(extra_fields or {})

    @property
    def collection(self) -> str:
        return self.section.collection

    @property
    def rows(self) -> list[Row]:
        if self.section.rows is None:
            self.section.rows = []
        return self.section.rows

    def _guard(self) -> None:
        if self._is_busy():
            raise ReportBusyError(f"report is busy; edit to {self.collection} rejected")

    def _report(self) -> None:
        self._update_data(self.collection, self.rows)

    def _ensure_row(self, row_index: int) -> Row:
        if row_index < 0:
            raise IndexError(f"negative row index: {row_index}")
        rows = self.rows
        while len(rows) <= row_index:
            rows.append(Row())
        return rows[row_index]

    # --- fetch -----------------------------------------------------------------

    def fetch(self) -> list[Row]:
        """Re-read the whole collection and replace the in-memory rows.

        A failing list is logged and leaves the rows as they were.
        """
        try:
            documents = self.store.list(self.collection)
        except DocumentStoreError as e:
            logger.error("fetch %s failed: %s", self.collection, e)
            return self.rows
        self.section.rows = self._rows_from_documents(documents)
        logger.debug("fetch %s rows=%d", self.collection, len(self.section.rows))
        self._report()
        return self.section.rows

    def _rows_from_documents(self, documents: list[Document]) -> list[Row]:
        rows = [
            row_from_document(doc.id, doc.fields)
            for doc in documents
            if doc.id not in RESERVED_DOCUMENT_IDS
        ]
        if self.section.uses_generated_ids:
            return rows
        return align_rows(rows, self.section.row_labels)

    # --- edits -----------------------------------------------------------------

    def handle_change(self, row_index: int, column: str, value: Any) -> Row:
        self._guard()
        if column == CONSUMPTION:
            raise ReadOnlyFieldError(f"{CONSUMPTION} is derived from the stock columns")
        row = self._ensure_row(row_index)
        row[column] = value
        if column == CLOSING_STOCK:
            row[CONSUMPTION] = compute_consumption(row.get(OPENING_STOCK), row.get(CLOSING_STOCK))
        self._report()
        return row

    def set_day(self, row_index: int, day: date | None) -> Row:
        """Set the Day column (date picker); persisted only by the bulk save."""
        self._guard()
        row = self._ensure_row(row_index)
        row[DAY] = day
        self._report()
        return row

    def capture_signature(self, row_index: int, column: str, source: SignatureSource) -> str:
        """Store a trimmed signature in the row and write the row through immediately.

        Raises:
            SignatureCaptureError: the drawing is empty or unreadable
            DocumentStoreError: the write-through failed (the row keeps the signature)
        """
        self._guard()
        data_url = signature_data_url(source)
        row = self._ensure_row(row_index)
        row[column] = data_url
        self._report()
        self.save_row(row_index)
        return data_url

    def save_row(self, row_index: int) -> str:
        """Persist one row under its resolved key; returns the document id.

        A row saved under its label keeps that label as its id from then on.
        """
        row = self.rows[row_index]
        key = resolve_row_key(row, row_index, self.section.row_labels)
        self.store.put(self.collection, key.document_id, to_document_fields(row, self.extra_fields))
        if not row.id:
            # 以後の一括保存が同じドキュメントを上書きするよう ID を保持
            row.id = key.document_id
        logger.debug("write-through %s/%s", self.collection, key.document_id)
        return key.document_id

    # --- presentation ----------------------------------------------------------

    def cells(self, narrow: bool = False) -> list[list[Cell]]:
        """Cells per row label, in grid order (wide) or stacked order (narrow).

        Narrow mode lists the signature after the other fields of the row.
        """
        rows = self.rows
        columns = list(self.section.column_labels)
        if narrow and SIGNATURE in columns:
            columns = [c for c in columns if c != SIGNATURE] + [SIGNATURE]
        count = len(self.section.row_labels)
        if self.section.uses_generated_ids:
            # 自動 ID セクションは保存済み行数だけ伸びる
            count = max(count, len(rows))
        grid: list[list[Cell]] = []
        for idx in range(count):
            label = self.section.row_label(idx)
            row = rows[idx] if idx < len(rows) else Row()
            grid.append([
                Cell(
                    row_index=idx,
                    row_label=label,
                    column=col,
                    value=row.get(col),
                    kind=_cell_kind(self.section, col, row.get(col)),
                    read_only=col == CONSUMPTION,
                )
                for col in columns
            ])
        return grid


def _cell_kind(section: Section, column: str, value: Any) -> str:
    if column == SIGNATURE or is_data_url(value):
        return "signature"
    if column == DAY and section.uses_generated_ids:
        return "date"
    return "text"
