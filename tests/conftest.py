# Shared pytest fixtures
from __future__ import annotations
import tempfile
from datetime import date
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from water_report.config.loader import load_config
from water_report.db.document_store import MemoryDocumentStore
from water_report.logging.error_log import ErrorLogBuffer
from water_report.models.config_models import ReportConfig
from water_report.services.form_controller import FormController
from water_report.services.notifications import ToastQueue

# 2026-10-14 (Wed) -> week commencing Sunday 2026-10-11
TODAY = date(2026, 10, 14)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("PGDSN", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """plant_name: AD-008
notes_collection: notes2
sections:
  - collection: condenserWater2
    title: Condenser Water
    header: Date
    required: true
    row_labels: [Sunday, Monday, Tuesday]
    column_labels: [pH, Signature]
  - collection: chilledWater2
    title: Chilled Water
    key: generated
    technician: true
    required: true
    row_labels: ["{today}"]
    column_labels: [Day, pH, Signature]
  - collection: condenserChemicals2
    title: Condenser Chemicals
    header: Stocks
    technician: true
    row_labels: [PM3601 (25Kg), Biocide AQ]
    column_labels:
      - Opening Stock (Kg)
      - Received (Kg)
      - Closing Stock (Kg)
      - Consumption (Kg)
database:
  table: report_documents
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "report.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def report_config(write_config: Path) -> ReportConfig:
    return load_config(write_config)


@pytest.fixture()
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture()
def controller(report_config: ReportConfig, store: MemoryDocumentStore, temp_workdir: Path) -> FormController:
    ctl = FormController(
        report_config,
        store,
        error_log=ErrorLogBuffer(temp_workdir / "logs"),
        toasts=ToastQueue(),
        today=TODAY,
    )
    ctl.load()
    ctl.mount()
    return ctl


@pytest.fixture()
def signature_png(tmp_path: Path) -> Path:
    """A white image with one dark stroke."""
    img = Image.new("RGB", (120, 60), (255, 255, 255))
    ImageDraw.Draw(img).line((20, 30, 90, 35), fill=(0, 0, 0), width=3)
    path = tmp_path / "signature.png"
    img.save(path)
    return path


@pytest.fixture()
def blank_png(tmp_path: Path) -> Path:
    path = tmp_path / "blank.png"
    Image.new("RGB", (120, 60), (255, 255, 255)).save(path)
    return path
