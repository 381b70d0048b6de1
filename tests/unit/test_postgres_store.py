from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import psycopg2.extras
import pytest

from water_report.db.postgres_store import PostgresDocumentStore, connect, resolve_dsn
from water_report.errors import DocumentStoreError
from water_report.models.config_models import DatabaseConfig


def _store(fetchall=None, fetchone=None, rowcount=0):
    conn = MagicMock()
    conn.closed = 0
    cur = conn.cursor.return_value
    cur.fetchall.return_value = fetchall or []
    cur.fetchone.return_value = fetchone
    cur.rowcount = rowcount
    store = PostgresDocumentStore(conn, create=False)
    return store, conn, cur


def test_resolve_dsn_env_priority(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
    assert resolve_dsn(DatabaseConfig(dsn="other")) == "postgresql://u@h/db"


def test_resolve_dsn_pg_vars_then_config(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("PGHOST", "dbhost")
    dsn = resolve_dsn(DatabaseConfig(port=6543, user="app", password="pw", database="reports"))
    assert dsn == "host=dbhost port=6543 user=app dbname=reports password=pw"


def test_ensure_schema_on_create():
    conn = MagicMock()
    PostgresDocumentStore(conn)
    conn.cursor.return_value.execute.assert_called_once()
    conn.commit.assert_called_once()


def test_list_returns_documents_in_query_order():
    store, conn, cur = _store(fetchall=[("Monday", {"pH": "7"}), ("Sunday", {"pH": "8"})])
    docs = store.list("condenserWater2", {"plantName": "AD-008"})
    assert [d.id for d in docs] == ["Monday", "Sunday"]
    params = cur.execute.call_args.args[1]
    assert params[0] == "condenserWater2"
    assert isinstance(params[1], psycopg2.extras.Json)
    conn.commit.assert_called_once()


def test_get_missing_returns_none():
    store, _, _ = _store(fetchone=None)
    assert store.get("c", "x") is None


def test_put_upserts_and_commits():
    store, conn, cur = _store()
    store.put("c", "Monday", {"pH": "7"})
    sql_text = str(cur.execute.call_args.args[0])
    assert "ON CONFLICT" in sql_text
    conn.commit.assert_called_once()


def test_delete_batch_returns_rowcount_and_skips_empty():
    store, conn, cur = _store(rowcount=3)
    assert store.delete_batch("c", ["a", "b", "c"]) == 3
    assert store.delete_batch("c", []) == 0
    assert cur.execute.call_count == 1


def test_failure_rolls_back_and_wraps():
    store, conn, cur = _store()
    cur.execute.side_effect = psycopg2.OperationalError("server closed the connection")
    with pytest.raises(DocumentStoreError) as e:
        store.put("c", "Monday", {})
    assert "put c/Monday failed" in str(e.value)
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    cur.close.assert_called_once()


def test_connect_failure_is_store_error(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://nobody@127.0.0.1:1/none")
    with patch("water_report.db.postgres_store.psycopg2.connect", side_effect=psycopg2.OperationalError("refused")):
        with pytest.raises(DocumentStoreError):
            with connect(DatabaseConfig()):
                pass
