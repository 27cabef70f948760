from __future__ import annotations

import psycopg2
import pytest

from ods_importer.db.batch_insert import (
    BatchInsertError,
    InsertResult,
    RowInsertError,
    batch_insert,
    build_insert_statement,
    insert_row,
    quote_identifier,
    validate_table_name,
)


class DummyCursor:
    def __init__(self, fail_on: str | None = None) -> None:
        self.queries: list[str] = []
        self.fail_on = fail_on

    def execute(self, sql, params=None):
        if self.fail_on and params is not None and self.fail_on in params:
            raise psycopg2.IntegrityError("duplicate key value")
        self.queries.append(sql)

# execute_values は psycopg2 実体を呼ばないよう差し替え

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import ods_importer.db.batch_insert as bi
    def fake_execute_values(cursor, sql, rows, page_size=1000, template=None):  # noqa: D401
        if any("boom" in r for r in rows):
            raise psycopg2.DataError("bad batch")
        cursor.queries.append(sql)
    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_build_insert_statement():
    sql = build_insert_statement("people", ["Name", "Age"])
    assert sql == 'INSERT INTO people ("Name","Age") VALUES (%s,%s)'


def test_build_insert_statement_schema_qualified():
    assert build_insert_statement("hr.people", ["id"]).startswith("INSERT INTO hr.people (")


def test_quote_identifier_doubles_quotes():
    assert quote_identifier('we"ird') == '"we""ird"'
    assert quote_identifier("with space") == '"with space"'


@pytest.mark.parametrize("name", ["", "1abc", "a-b", "people; DROP TABLE x", "a.b.c", '"q"'])
def test_invalid_table_names(name):
    with pytest.raises(ValueError):
        validate_table_name(name)


def test_build_insert_statement_requires_fields():
    with pytest.raises(ValueError):
        build_insert_statement("people", [])


def test_insert_row_uses_savepoint():
    cur = DummyCursor()
    insert_row(cur, "INSERT INTO t (\"a\") VALUES (%s)", ["x"])
    assert cur.queries == [
        "SAVEPOINT ods_row",
        'INSERT INTO t ("a") VALUES (%s)',
        "RELEASE SAVEPOINT ods_row",
    ]


def test_insert_row_failure_rolls_back_to_savepoint():
    cur = DummyCursor(fail_on="dup")
    with pytest.raises(RowInsertError, match="duplicate key"):
        insert_row(cur, "INSERT INTO t (\"a\") VALUES (%s)", ["dup"])
    assert cur.queries == ["SAVEPOINT ods_row", "ROLLBACK TO SAVEPOINT ods_row"]


def test_batch_insert_basic():
    cur = DummyCursor()
    res = batch_insert(cur, table="people", columns=["Name", "Age"], rows=[["Ann", "30"], ["Bob", None]])
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 2
    assert cur.queries == [
        "SAVEPOINT ods_batch",
        'INSERT INTO people ("Name","Age") VALUES %s',
        "RELEASE SAVEPOINT ods_batch",
    ]


def test_batch_insert_empty_rows():
    cur = DummyCursor()
    res = batch_insert(cur, table="people", columns=["Name"], rows=[])
    assert res.inserted_rows == 0
    assert cur.queries == []


def test_batch_insert_failure_rolls_back():
    cur = DummyCursor()
    with pytest.raises(BatchInsertError, match="bad batch"):
        batch_insert(cur, table="people", columns=["Name"], rows=[["ok"], ["boom"]])
    assert cur.queries == ["SAVEPOINT ods_batch", "ROLLBACK TO SAVEPOINT ods_batch"]


def test_batch_insert_with_metrics_callback():
    cur = DummyCursor()
    captured = []
    batch_insert(cur, table="people", columns=["Name"], rows=[["a"], ["b"]], metrics_callback=captured.append)
    assert len(captured) == 1
    metrics = captured[0]
    assert metrics.batch_size == 2
    assert metrics.elapsed_seconds >= 0
    assert metrics.end_time >= metrics.start_time


def test_batch_insert_metrics_reported_on_failure():
    cur = DummyCursor()
    captured = []
    with pytest.raises(BatchInsertError):
        batch_insert(cur, table="people", columns=["Name"], rows=[["boom"]], metrics_callback=captured.append)
    assert captured and captured[0].batch_size == 1


def test_batch_insert_no_metrics_for_empty_rows():
    captured = []
    batch_insert(DummyCursor(), table="people", columns=["Name"], rows=[], metrics_callback=captured.append)
    assert captured == []
