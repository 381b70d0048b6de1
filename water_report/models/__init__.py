"""Domain models for the weekly water treatment report.

This package contains the configuration, row/section state and result models
used throughout the application.
"""

from .config_models import DatabaseConfig, ReportConfig, SectionConfig
from .operation_result import CollectionStat, OperationResult
from .row import ExplicitKey, PositionalKey, Row, RowKey
from .section import ReportState, Section, TechnicianInfo

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ReportConfig",
    "SectionConfig",
    # Report state
    "Row",
    "RowKey",
    "ExplicitKey",
    "PositionalKey",
    "Section",
    "TechnicianInfo",
    "ReportState",
    # Results
    "CollectionStat",
    "OperationResult",
]
