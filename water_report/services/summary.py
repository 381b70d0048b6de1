from __future__ import annotations

from ..models.operation_result import OperationResult

"""SUMMARY line rendering for report operations."""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: OperationResult) -> str:
    """Render a SUMMARY line from an OperationResult.

    Format:
    SUMMARY op={operation} status={ok|failed} collections={ok}/{total} documents={n}
    failed={comma separated collections or -} elapsed_sec={elapsed}

    Examples:
        >>> from datetime import datetime, timezone
        >>> from water_report.models.operation_result import CollectionStat
        >>> t0 = datetime(2026, 1, 4, 10, 0, 0, tzinfo=timezone.utc)
        >>> t1 = datetime(2026, 1, 4, 10, 0, 2, tzinfo=timezone.utc)
        >>> r = OperationResult("save", True, t0, t1, [CollectionStat("notes2", 1)])
        >>> render_summary_line(r)
        'SUMMARY op=save status=ok collections=1/1 documents=1 failed=- elapsed_sec=2'
    """
    stats = result.collection_stats
    ok_count = sum(1 for s in stats if s.ok)
    failed = ",".join(result.failed_collections) or "-"
    return (
        f"SUMMARY op={result.operation} "
        f"status={'ok' if result.ok else 'failed'} "
        f"collections={ok_count}/{len(stats)} "
        f"documents={result.total_documents} "
        f"failed={failed} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
