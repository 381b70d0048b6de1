from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Result models for report operations (save / clear / load).

The controller returns an OperationResult instead of raising, mirroring the
single success/failure notification the user sees.
"""

__all__ = [
    "CollectionStat",
    "OperationResult",
]


@dataclass(frozen=True)
class CollectionStat:
    """Per-collection outcome inside one operation."""
    collection: str
    documents: int  # 書き込み/削除/読み込み件数
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class OperationResult:
    """Aggregated outcome of one bulk operation."""
    operation: str  # save / clear / load
    ok: bool
    start_time: datetime
    end_time: datetime
    collection_stats: list[CollectionStat] = field(default_factory=list)
    message: str = ""
    error: str | None = None
    confirmation_shown: bool = False  # "Save and Exit" confirmation overlay

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def total_documents(self) -> int:
        return sum(s.documents for s in self.collection_stats)

    @property
    def failed_collections(self) -> list[str]:
        return [s.collection for s in self.collection_stats if not s.ok]
