from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Union

from ..errors import RowLabelError

"""Row model, row identity and the document <-> row transformations.

A Row is what one line of a section table holds in memory: column label -> value,
plus the id of the stored document it came from (if any). Rows without an id are
keyed by the row label at their position in the section.
"""

__all__ = [
    "Row",
    "ExplicitKey",
    "PositionalKey",
    "RowKey",
    "resolve_row_key",
    "flatten_fields",
    "row_from_document",
    "to_document_fields",
    "parse_float",
    "compute_consumption",
    "OPENING_STOCK",
    "CLOSING_STOCK",
    "CONSUMPTION",
    "DAY",
    "SIGNATURE",
]

OPENING_STOCK = "Opening Stock (Kg)"
CLOSING_STOCK = "Closing Stock (Kg)"
CONSUMPTION = "Consumption (Kg)"
DAY = "Day"
SIGNATURE = "Signature"

# JavaScript parseFloat 互換: 先頭の数値部分のみ採用
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass
class Row:
    """One line of a section table."""
    values: dict[str, Any] = field(default_factory=dict)
    id: str | None = None  # stored document id (explicit key)

    def get(self, column: str, default: Any = None) -> Any:
        return self.values.get(column, default)

    def __getitem__(self, column: str) -> Any:
        return self.values[column]

    def __setitem__(self, column: str, value: Any) -> None:
        self.values[column] = value

    def __contains__(self, column: object) -> bool:
        return column in self.values

    def is_empty(self) -> bool:
        return self.id is None and not self.values

    def copy(self) -> Row:
        return Row(values=dict(self.values), id=self.id)


@dataclass(frozen=True)
class ExplicitKey:
    id: str

    @property
    def document_id(self) -> str:
        return self.id


@dataclass(frozen=True)
class PositionalKey:
    label: str

    @property
    def document_id(self) -> str:
        return self.label


RowKey = Union[ExplicitKey, PositionalKey]


def resolve_row_key(row: Row, index: int, row_labels: Sequence[str] | None) -> RowKey:
    """Resolve the document key of ``row`` sitting at ``index``.

    An explicit id always wins. Otherwise the row label at the same position is used.

    Raises:
        RowLabelError: no id and the labels are missing, malformed or too short
    """
    if row.id:
        return ExplicitKey(row.id)
    if row_labels is None or isinstance(row_labels, str) or not isinstance(row_labels, Sequence):
        raise RowLabelError(f"invalid or undefined row labels: {row_labels!r}")
    if index < 0 or index >= len(row_labels):
        raise RowLabelError(f"no row label for row index {index} (labels={len(row_labels)})")
    label = row_labels[index]
    if not isinstance(label, str) or not label:
        raise RowLabelError(f"row label at index {index} is not a non-empty string: {label!r}")
    return PositionalKey(label)


def flatten_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Promote one level of nested mappings into the top level.

    The container key is dropped; when two nested mappings share a sub-key the one
    iterated later wins.
    """
    flat: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                flat[sub_key] = sub_value
        else:
            flat[key] = value
    return flat


def row_from_document(doc_id: str, fields: Mapping[str, Any]) -> Row:
    return Row(values=flatten_fields(fields), id=doc_id)


def to_document_fields(row: Row, extra: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build the stored form of ``row``: values with dates as ISO strings, plus ``extra``."""
    fields: dict[str, Any] = {}
    for column, value in row.values.items():
        if isinstance(value, (date, datetime)):
            fields[column] = value.isoformat()
        else:
            fields[column] = value
    if extra:
        fields.update(extra)
    return fields


def parse_float(value: Any) -> float:
    """Parse like JavaScript parseFloat, with 0 for missing or unparseable input."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value == value else 0.0  # NaN -> 0
    match = _FLOAT_PREFIX.match(str(value).strip())
    if match is None:
        return 0.0
    return float(match.group(0))


def compute_consumption(opening: Any, closing: Any) -> float:
    return parse_float(opening) - parse_float(closing)
