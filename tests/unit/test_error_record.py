from __future__ import annotations

import json

from ods_importer.models.error_record import DOCUMENT_LEVEL_ROW, ErrorRecord

"""Unit tests for ErrorRecord."""

KEYS = {"timestamp", "file", "table", "row", "error_type", "db_message"}


def test_error_record_document_level_row():
    rec = ErrorRecord.create(
        file="broken.ods",
        table="people",
        row=DOCUMENT_LEVEL_ROW,
        error_type="MALFORMED_DOCUMENT",
        db_message="invalid XML at line 1, column 10",
    )
    assert rec.row == -1
    data = json.loads(rec.to_json_line())
    assert data["row"] == -1
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_error_record_keeps_non_ascii_text():
    rec = ErrorRecord.create("données.ods", "people", 4, "INSERT_FAILED", "valeur invalide: «é»")
    line = rec.to_json_line()
    assert "données.ods" in line
    assert json.loads(line)["db_message"] == "valeur invalide: «é»"
