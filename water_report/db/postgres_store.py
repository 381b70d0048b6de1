from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extras
from psycopg2 import sql

from ..errors import DocumentStoreError
from ..models.config_models import DatabaseConfig
from .document_store import Document, DocumentStore

"""PostgreSQL backend for the document store.

All collections share one table:

    report_documents(collection text, doc_id text, data jsonb, updated_at timestamptz,
                     PRIMARY KEY (collection, doc_id))

put は INSERT .. ON CONFLICT DO UPDATE で丸ごと置換 (フィールド単位マージなし)。
delete_batch は 1 トランザクションで実行し、コレクション内で原子的。
"""

__all__ = [
    "PostgresDocumentStore",
    "resolve_dsn",
    "connect",
]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve connection parameters.

    Priority:
        1. DATABASE_URL / PGDSN (whole DSN), then the config ``dsn``
        2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the config ``database`` section for whatever is still missing
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


class PostgresDocumentStore(DocumentStore):
    """Document store on a psycopg2 connection.

    Each call is its own transaction: committed on success, rolled back and
    re-raised as DocumentStoreError on failure.
    """

    def __init__(self, conn: Any, table: str = "report_documents", *, create: bool = True) -> None:
        self.conn = conn
        self.table = table
        if create:
            self.ensure_schema()

    def _table(self) -> sql.Identifier:
        return sql.Identifier(self.table)

    @contextmanager
    def _cursor(self, action: str) -> Iterator[Any]:
        cur = None
        try:
            cur = self.conn.cursor()
            yield cur
            self.conn.commit()
        except psycopg2.Error as e:
            try:
                self.conn.rollback()
            except psycopg2.Error:  # pragma: no cover - connection already broken
                pass
            raise DocumentStoreError(f"{action} failed: {e}") from e
        finally:
            if cur is not None:
                cur.close()

    def ensure_schema(self) -> None:
        with self._cursor("create table") as cur:
            cur.execute(
                sql.SQL(
                    "CREATE TABLE IF NOT EXISTS {} ("
                    " collection text NOT NULL,"
                    " doc_id text NOT NULL,"
                    " data jsonb NOT NULL,"
                    " updated_at timestamptz NOT NULL DEFAULT now(),"
                    " PRIMARY KEY (collection, doc_id))"
                ).format(self._table())
            )

    def list(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        query = sql.SQL("SELECT doc_id, data FROM {} WHERE collection = %s").format(self._table())
        params: list[Any] = [collection]
        for key, value in (filters or {}).items():
            # jsonb 包含演算子で等価比較 (数値/文字列の型も一致させる)
            query += sql.SQL(" AND data @> %s")
            params.append(psycopg2.extras.Json({key: value}))
        query += sql.SQL(" ORDER BY doc_id")
        with self._cursor(f"list {collection}") as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [Document(id=doc_id, fields=dict(data)) for doc_id, data in rows]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        query = sql.SQL("SELECT data FROM {} WHERE collection = %s AND doc_id = %s").format(self._table())
        with self._cursor(f"get {collection}/{doc_id}") as cur:
            cur.execute(query, (collection, doc_id))
            row = cur.fetchone()
        return dict(row[0]) if row is not None else None

    def put(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        if not doc_id:
            raise DocumentStoreError(f"empty document id for collection {collection}")
        query = sql.SQL(
            "INSERT INTO {} (collection, doc_id, data) VALUES (%s, %s, %s)"
            " ON CONFLICT (collection, doc_id)"
            " DO UPDATE SET data = EXCLUDED.data, updated_at = now()"
        ).format(self._table())
        with self._cursor(f"put {collection}/{doc_id}") as cur:
            cur.execute(query, (collection, doc_id, psycopg2.extras.Json(dict(fields))))

    def delete_batch(self, collection: str, doc_ids: Iterable[str]) -> int:
        ids = list(doc_ids)
        if not ids:
            return 0
        query = sql.SQL("DELETE FROM {} WHERE collection = %s AND doc_id = ANY(%s)").format(self._table())
        with self._cursor(f"delete {collection}") as cur:
            cur.execute(query, (collection, ids))
            return cur.rowcount

    def close(self) -> None:
        if not self.conn.closed:
            self.conn.close()


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[PostgresDocumentStore]:
    """Open a connection from the resolved DSN and yield a store on it."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise DocumentStoreError(f"database connection failed: {e}") from e
    conn.autocommit = False  # 明示トランザクション境界 (各操作で COMMIT/ROLLBACK)
    try:
        yield PostgresDocumentStore(conn, table=db_cfg.table)
    finally:
        if not conn.closed:
            conn.close()
