from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from water_report.cli import main as cli_main
from water_report.db.document_store import MemoryDocumentStore
from water_report.errors import DocumentStoreError
from water_report.logging.init import reset_logging

"""Exit code contract: 0 success, 1 fatal (startup / input), 2 operation failed."""


class RejectingStore(MemoryDocumentStore):
    def put(self, collection, doc_id, fields):
        raise DocumentStoreError("permission denied")


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main(["--mock", "show"])
    captured = capsys.readouterr()
    assert code == 1
    assert "ERROR config:" in captured.out


def test_exit_code_success(write_config, capsys):
    reset_logging()
    assert cli_main(["--mock", "clear", "--yes"]) == 0


def test_exit_code_operation_failed(write_config, temp_workdir: Path, capsys):
    reset_logging()
    workbook = temp_workdir / "report.xlsx"
    assert cli_main(["--mock", "export", "--output", str(workbook)]) == 0
    with patch("water_report.cli.__main__.MemoryDocumentStore", return_value=RejectingStore()):
        code = cli_main(["--mock", "submit", "--workbook", str(workbook)])
    out = capsys.readouterr().out
    assert code == 2
    assert "ERROR Error submitting report. Please try again." in out
    assert "SUMMARY op=save status=failed" in out


def test_exit_code_missing_workbook(write_config, temp_workdir: Path, capsys):
    reset_logging()
    assert cli_main(["--mock", "submit", "--workbook", str(temp_workdir / "nope.xlsx")]) == 1
