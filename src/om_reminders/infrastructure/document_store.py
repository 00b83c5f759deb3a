"""Document store: collection/id addressed JSON documents on top of SQLite."""

from __future__ import annotations

import json
import re
import sqlite3
import uuid
from typing import Any, Iterable, Protocol

Filter = tuple[str, str, Any]

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_OPERATORS = {"==": "=", "!=": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}


class DocumentStore(Protocol):
    """Minimal document-store surface every repository is written against."""

    def get(self, collection: str, id: str) -> dict[str, Any] | None: ...

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def put(self, collection: str, id: str, doc: dict[str, Any]) -> None: ...

    def add(self, collection: str, doc: dict[str, Any]) -> str: ...

    def create(self, collection: str, id: str, doc: dict[str, Any]) -> bool: ...

    def delete(self, collection: str, id: str) -> bool: ...


def _json_path(field: str) -> str:
    if not _FIELD_RE.match(field):
        raise ValueError(f"Invalid document field: {field}")
    return f"$.{field}"


class SqliteDocumentStore:
    """DocumentStore backed by the ``documents`` table.

    Returned documents always carry their ``id``. ``create`` is the atomic
    insert-if-absent primitive: it relies on the (collection, id) primary key,
    so two writers racing for the same id (even from different processes
    sharing the database file) see exactly one success.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get(self, collection: str, id: str) -> dict[str, Any] | None:
        row = self._db.execute(
            "SELECT id, body FROM documents WHERE collection = ? AND id = ?", (collection, id)
        ).fetchone()
        if not row:
            return None
        return self._row_to_doc(row)

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        clauses = ["collection = ?"]
        params: list[Any] = [collection]
        for field, op, value in filters:
            sql_op = _OPERATORS.get(op)
            if sql_op is None:
                raise ValueError(f"Unsupported filter operator: {op}")
            if value is None and op in ("==", "!="):
                clauses.append(f"json_extract(body, ?) IS {'NOT ' if op == '!=' else ''}NULL")
                params.append(_json_path(field))
                continue
            if isinstance(value, bool):
                value = int(value)
            clauses.append(f"json_extract(body, ?) {sql_op} ?")
            params.extend([_json_path(field), value])

        sql = f"SELECT id, body FROM documents WHERE {' AND '.join(clauses)}"
        if order_by:
            sql += f" ORDER BY json_extract(body, ?) {'DESC' if descending else 'ASC'}, rowid {'DESC' if descending else 'ASC'}"
            params.append(_json_path(order_by))
        else:
            sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        rows = self._db.execute(sql, params).fetchall()
        return [self._row_to_doc(row) for row in rows]

    def put(self, collection: str, id: str, doc: dict[str, Any]) -> None:
        self._db.execute(
            """INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)
               ON CONFLICT(collection, id) DO UPDATE SET body = excluded.body""",
            (collection, id, self._dump(id, doc)),
        )
        self._db.commit()

    def add(self, collection: str, doc: dict[str, Any]) -> str:
        id = uuid.uuid4().hex
        self._db.execute(
            "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
            (collection, id, self._dump(id, doc)),
        )
        self._db.commit()
        return id

    def create(self, collection: str, id: str, doc: dict[str, Any]) -> bool:
        result = self._db.execute(
            "INSERT OR IGNORE INTO documents (collection, id, body) VALUES (?, ?, ?)",
            (collection, id, self._dump(id, doc)),
        )
        self._db.commit()
        return result.rowcount > 0

    def delete(self, collection: str, id: str) -> bool:
        result = self._db.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, id))
        self._db.commit()
        return result.rowcount > 0

    @staticmethod
    def _dump(id: str, doc: dict[str, Any]) -> str:
        body = {k: v for k, v in doc.items() if k != "id"}
        return json.dumps(body, default=str)

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> dict[str, Any]:
        doc = json.loads(row["body"])
        doc["id"] = row["id"]
        return doc
