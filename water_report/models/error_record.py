from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per failed store operation. ``document`` is "-" for collection level
failures where no single document can be named (list / delete_batch).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        operation: report operation that failed (save / clear / load / fetch / sign)
        collection: collection being written or read
        document: document id, or "-" when not applicable
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: error message
    """
    timestamp: str  # ISO8601 UTC
    operation: str
    collection: str
    document: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(operation: str, collection: str, document: str, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            operation=operation,
            collection=collection,
            document=document,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
