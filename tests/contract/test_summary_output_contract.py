from __future__ import annotations

import re
from datetime import datetime, timezone

from water_report.models.operation_result import CollectionStat, OperationResult
from water_report.services.summary import render_summary_line

"""SUMMARY line contract (one line per save / clear)."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY op=(save|clear|load) status=(ok|failed) collections=([0-9]+)/([0-9]+) "
    r"documents=([0-9]+) failed=(-|[A-Za-z0-9_]+(,[A-Za-z0-9_]+)*) elapsed_sec=([0-9]+(\.[0-9]+)?)$"
)


def _at(second: int) -> datetime:
    return datetime(2026, 10, 14, 10, 0, second, tzinfo=timezone.utc)


def test_summary_line_matches_contract_success():
    result = OperationResult("save", True, _at(0), _at(3), [CollectionStat("condenserWater2", 7)])
    m = SUMMARY_PATTERN.match(render_summary_line(result))
    assert m is not None
    assert m.group(2) == "ok"
    assert m.group(6) == "-"


def test_summary_line_matches_contract_failure():
    stats = [CollectionStat("condenserWater2", 7), CollectionStat("notes2", 0, "timeout")]
    result = OperationResult("clear", False, _at(0), _at(1), stats)
    m = SUMMARY_PATTERN.match(render_summary_line(result))
    assert m is not None
    assert m.group(3) == "1" and m.group(4) == "2"
    assert m.group(6) == "notes2"


def test_summary_line_is_single_line():
    result = OperationResult("load", True, _at(0), _at(0), [])
    assert "\n" not in render_summary_line(result)
