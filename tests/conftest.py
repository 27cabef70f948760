# Shared pytest fixtures
from __future__ import annotations
import tempfile
import zipfile
from pathlib import Path
from xml.sax.saxutils import escape

import pytest

from ods_importer.logging.init import reset_logging

OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"
TABLE_NS = "urn:oasis:names:tc:opendocument:xmlns:table:1.0"
TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"

NS_DECL = f'xmlns:office="{OFFICE_NS}" xmlns:table="{TABLE_NS}" xmlns:text="{TEXT_NS}"'


class OdsBuilder:
    """Small helpers producing content.xml fragments and .ods archives."""

    @staticmethod
    def cell(text: str | None = None, repeat: int | str | None = None) -> str:
        attr = f' table:number-columns-repeated="{repeat}"' if repeat is not None else ""
        if text is None:
            return f"<table:table-cell{attr}/>"
        return f'<table:table-cell{attr} office:value-type="string"><text:p>{escape(text)}</text:p></table:table-cell>'

    @staticmethod
    def row(*cells: str) -> str:
        return "<table:table-row>" + "".join(cells) + "</table:table-row>"

    @classmethod
    def text_row(cls, *values: str | None) -> str:
        return cls.row(*(cls.cell(v) for v in values))

    @staticmethod
    def content(body: str) -> bytes:
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            f"<office:document-content {NS_DECL}>"
            "<office:body><office:spreadsheet>"
            f'<table:table table:name="Sheet1"><table:table-column/>{body}</table:table>'
            "</office:spreadsheet></office:body>"
            "</office:document-content>"
        ).encode("utf-8")

    @classmethod
    def write(cls, path: Path, body: str | bytes) -> Path:
        data = body if isinstance(body, bytes) else cls.content(body)
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("mimetype", "application/vnd.oasis.opendocument.spreadsheet")
            zf.writestr("content.xml", data, compress_type=zipfile.ZIP_DEFLATED)
        return path


@pytest.fixture()
def ods() -> type[OdsBuilder]:
    return OdsBuilder


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
import:
  mode: row
  page_size: 100
  skip_empty_rows: true
  null_sentinels: ["NULL", "N/A"]
  progress_every: 20
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def people_ods(temp_workdir: Path, ods) -> Path:
    body = (
        ods.text_row("Name", "Age")
        + ods.text_row("Ann", "30")
        + ods.row(ods.cell(), ods.cell("40"))
    )
    return ods.write(temp_workdir / "data" / "people.ods", body)


class DummyCursor:
    """Records executed statements; raises for rows whose params contain ``fail_marker``."""

    def __init__(self, fail_marker: str | None = None) -> None:
        self.executed: list[tuple[str, tuple | None]] = []
        self.fail_marker = fail_marker

    def execute(self, sql: str, params: tuple | None = None) -> None:
        import psycopg2

        if params is not None and self.fail_marker is not None and self.fail_marker in params:
            raise psycopg2.DataError(f"invalid input value: {self.fail_marker}")
        self.executed.append((sql, params))

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]

    @property
    def inserted(self) -> list[tuple]:
        return [p for sql, p in self.executed if sql.startswith("INSERT") and p is not None]


@pytest.fixture()
def dummy_cursor() -> DummyCursor:
    return DummyCursor()


@pytest.fixture()
def failing_cursor():
    def make(marker: str) -> DummyCursor:
        return DummyCursor(fail_marker=marker)
    return make
