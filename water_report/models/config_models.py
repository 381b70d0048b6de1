from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the weekly water treatment report.

These are the typed form of config/report.yml after validation by
water_report.config.loader.
"""

__all__ = [
    "DatabaseConfig",
    "SectionConfig",
    "ReportConfig",
    "KEY_POSITIONAL",
    "KEY_GENERATED",
]

KEY_POSITIONAL = "positional"
KEY_GENERATED = "generated"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    table: str = "report_documents"


@dataclass(frozen=True)
class SectionConfig:
    """One report table and the collection it is stored in."""
    collection: str
    title: str
    row_labels: tuple[str, ...]
    column_labels: tuple[str, ...]
    key: str = KEY_POSITIONAL  # positional: row label is the doc id / generated: auto id
    technician: bool = False  # collects a technician name + signature (technicianInfo doc)
    required: bool = False  # must be loaded before a bulk save
    header: str = ""  # first grid column heading (Date / Stocks)


@dataclass(frozen=True)
class ReportConfig:
    """Root configuration object."""
    plant_name: str
    sections: tuple[SectionConfig, ...]
    notes_collection: str
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def managed_collections(self) -> list[str]:
        """Every collection a bulk clear empties: sections in order, then notes."""
        return [s.collection for s in self.sections] + [self.notes_collection]

    def section(self, collection: str) -> SectionConfig:
        for s in self.sections:
            if s.collection == collection:
                return s
        raise KeyError(collection)
