from __future__ import annotations

from datetime import datetime, timedelta, timezone

from water_report.models.operation_result import CollectionStat, OperationResult
from water_report.services.summary import render_summary_line

T0 = datetime(2026, 10, 14, 10, 0, 0, tzinfo=timezone.utc)


def _result(ok: bool, stats: list[CollectionStat], seconds: float, operation: str = "save") -> OperationResult:
    end = T0 + timedelta(seconds=seconds)
    return OperationResult(operation, ok, T0, end, stats)


def test_render_summary_line_all_success():
    stats = [CollectionStat("condenserWater2", 7), CollectionStat("notes2", 1)]
    line = render_summary_line(_result(True, stats, 2.0))
    assert line == "SUMMARY op=save status=ok collections=2/2 documents=8 failed=- elapsed_sec=2"


def test_render_summary_line_failed_collections():
    stats = [
        CollectionStat("condenserWater2", 7),
        CollectionStat("chilledWater2", 0, "list chilledWater2 unavailable"),
        CollectionStat("notes2", 0, "timeout"),
    ]
    line = render_summary_line(_result(False, stats, 1.25, operation="clear"))
    assert line == (
        "SUMMARY op=clear status=failed collections=1/3 documents=7 "
        "failed=chilledWater2,notes2 elapsed_sec=1.25"
    )


def test_render_summary_line_small_elapsed():
    line = render_summary_line(_result(True, [], 0.0015))
    assert line.endswith("elapsed_sec=0.0015")
    assert "collections=0/0" in line


def test_result_properties():
    stats = [CollectionStat("a", 2), CollectionStat("b", 0, "x")]
    result = _result(False, stats, 3)
    assert result.elapsed_seconds == 3
    assert result.total_documents == 2
    assert result.failed_collections == ["b"]
