from __future__ import annotations

from datetime import date

import pytest

from water_report.errors import RowLabelError
from water_report.models.row import (
    ExplicitKey,
    PositionalKey,
    Row,
    compute_consumption,
    flatten_fields,
    parse_float,
    resolve_row_key,
    row_from_document,
    to_document_fields,
)


def test_resolve_row_key_explicit_id_wins():
    row = Row({"pH": "7"}, id="abc")
    assert resolve_row_key(row, 5, ["Sunday"]) == ExplicitKey("abc")


def test_resolve_row_key_positional_label():
    key = resolve_row_key(Row({"pH": "7"}), 1, ["Sunday", "Monday"])
    assert key == PositionalKey("Monday")
    assert key.document_id == "Monday"


@pytest.mark.parametrize("labels", [None, "Sunday", ["Sunday"], ["Sunday", ""]])
def test_resolve_row_key_invalid_labels(labels):
    with pytest.raises(RowLabelError):
        resolve_row_key(Row(), 1, labels)


def test_flatten_promotes_nested_and_drops_container():
    fields = {"pH": "7", "stock": {"Opening Stock (Kg)": "50", "Closing Stock (Kg)": "20"}}
    assert flatten_fields(fields) == {
        "pH": "7",
        "Opening Stock (Kg)": "50",
        "Closing Stock (Kg)": "20",
    }


def test_flatten_later_nested_wins():
    fields = {"a": {"x": 1}, "b": {"x": 2}}
    assert flatten_fields(fields) == {"x": 2}


def test_row_from_document_keeps_id():
    row = row_from_document("Monday", {"pH": "7.1", "plantName": "AD-008"})
    assert row.id == "Monday"
    assert row["pH"] == "7.1"


def test_to_document_fields_dates_and_extra():
    row = Row({"Day": date(2026, 10, 14), "pH": "7"}, id="x")
    fields = to_document_fields(row, {"plantName": "AD-008"})
    assert fields == {"Day": "2026-10-14", "pH": "7", "plantName": "AD-008"}
    # id は値に含めない
    assert "id" not in fields


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("50", 50.0),
        ("12.5kg", 12.5),
        ("  -3", -3.0),
        (".5", 0.5),
        ("1e2x", 100.0),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (7, 7.0),
        (float("nan"), 0.0),
        ("Infinity", float("inf")),
        ("-Infinity kg", float("-inf")),
        ("infinity", 0.0),
    ],
)
def test_parse_float_prefix_semantics(raw, expected):
    assert parse_float(raw) == expected


def test_compute_consumption():
    assert compute_consumption("50", "20") == 30.0
    assert compute_consumption(None, "20") == -20.0
    assert compute_consumption("abc", "") == 0.0


def test_row_is_empty_and_copy():
    assert Row().is_empty()
    row = Row({"pH": "7"}, id="a")
    clone = row.copy()
    clone["pH"] = "8"
    assert row["pH"] == "7"
    assert not row.is_empty()
