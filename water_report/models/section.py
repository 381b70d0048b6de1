from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from .config_models import KEY_GENERATED, ReportConfig, SectionConfig
from .row import Row

"""Section and report state models.

ReportState is the single session state object owned by FormController. Bindings
hold references to the Section objects inside it and report changes back through
the controller's update_data callback.
"""

__all__ = [
    "Section",
    "TechnicianInfo",
    "ReportState",
    "week_start",
    "format_long_date",
]


def week_start(day: date) -> date:
    """Sunday on or before ``day`` (weeks commence on Sunday)."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_long_date(day: date) -> str:
    """e.g. 18th October 2026"""
    return f"{_ordinal(day.day)} {day.strftime('%B %Y')}"


@dataclass
class Section:
    """A named report table bound to one collection.

    ``rows`` stays None until the section has been loaded from the store.
    """
    config: SectionConfig
    row_labels: list[str]
    column_labels: list[str]
    rows: list[Row] | None = None

    @classmethod
    def from_config(cls, config: SectionConfig, week: date | None = None, today: date | None = None) -> Section:
        section = cls(config=config, row_labels=[], column_labels=[])
        section.apply_labels(week=week, today=today)
        return section

    def apply_labels(self, week: date | None = None, today: date | None = None) -> None:
        """Expand the {today} and {week_start} placeholders of the configured labels."""
        today = today or date.today()
        week = week or week_start(today)
        fmt = {"today": today.strftime("%d/%m/%Y"), "week_start": week.strftime("%d/%m/%Y")}
        self.row_labels = [label.format(**fmt) for label in self.config.row_labels]
        self.column_labels = [label.format(**fmt) for label in self.config.column_labels]

    @property
    def collection(self) -> str:
        return self.config.collection

    @property
    def title(self) -> str:
        return self.config.title

    @property
    def loaded(self) -> bool:
        return self.rows is not None

    @property
    def uses_generated_ids(self) -> bool:
        return self.config.key == KEY_GENERATED

    def row_label(self, index: int) -> str:
        if index < len(self.row_labels):
            return self.row_labels[index]
        return f"#{index + 1}"


@dataclass
class TechnicianInfo:
    name: str = ""
    signature: str = ""

    def to_fields(self) -> dict[str, Any]:
        return {"name": self.name, "signature": self.signature}


@dataclass
class ReportState:
    """Session state of one report form."""
    config: ReportConfig
    week_commencing: date
    sections: dict[str, Section] = field(default_factory=dict)
    technicians: dict[str, TechnicianInfo] = field(default_factory=dict)
    notes: list[Any] = field(default_factory=list)
    note_author: TechnicianInfo = field(default_factory=TechnicianInfo)

    @classmethod
    def create(cls, config: ReportConfig, today: date | None = None) -> ReportState:
        today = today or date.today()
        week = week_start(today)
        state = cls(config=config, week_commencing=week)
        for sc in config.sections:
            state.sections[sc.collection] = Section.from_config(sc, week=week, today=today)
            if sc.technician:
                state.technicians[sc.collection] = TechnicianInfo()
        return state

    @property
    def week_ending(self) -> date:
        return self.week_commencing + timedelta(days=6)

    @property
    def week_label(self) -> str:
        return (
            f"Week Commencing Sunday: {format_long_date(self.week_commencing)}"
            f" to {format_long_date(self.week_ending)}"
        )

    def section(self, collection: str) -> Section:
        try:
            return self.sections[collection]
        except KeyError:
            raise KeyError(f"unknown section collection: {collection}") from None

    def reset(self) -> None:
        """Empty every section (rows back to 'loaded, no data') and the notes."""
        for section in self.sections.values():
            section.rows = []
        self.notes = []
