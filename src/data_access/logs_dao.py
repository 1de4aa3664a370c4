"""Append-only audit log storage."""

from __future__ import annotations

from typing import Optional

from ..models.entities import LogEntry
from .db import execute, get_db, parse_timestamp, query_all, query_one


def _row_to_log(row) -> LogEntry:
    return LogEntry(
        log_id=row["log_id"],
        user_id=row["user_id"],
        role=row["role"],
        action=row["action"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        old_state=row["old_state"],
        new_state=row["new_state"],
        created_at=parse_timestamp(row["created_at"]),
    )


def append_log(
    user_id: Optional[int],
    role: Optional[str],
    action: str,
    entity_type: str,
    entity_id: int,
    old_state: Optional[str] = None,
    new_state: Optional[str] = None,
) -> None:
    """Record one action against one entity."""

    db = get_db()
    execute(
        db,
        """
        INSERT INTO logs (user_id, role, action, entity_type, entity_id, old_state, new_state)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (user_id, role, action, entity_type, entity_id, old_state, new_state),
    )


def _filters(action: Optional[str], entity_type: Optional[str]) -> tuple[str, list]:
    clause = " WHERE 1 = 1"
    params: list = []
    if action:
        clause += " AND action = ?"
        params.append(action)
    if entity_type:
        clause += " AND entity_type = ?"
        params.append(entity_type)
    return clause, params


def list_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[LogEntry], int]:
    """Return one page of log entries (newest first) and the total match count."""

    db = get_db()
    clause, params = _filters(action, entity_type)
    total = query_one(db, f"SELECT COUNT(*) AS total FROM logs{clause}", params)["total"]
    rows = query_all(
        db,
        f"SELECT * FROM logs{clause} ORDER BY created_at DESC, log_id DESC LIMIT ? OFFSET ?",
        params + [limit, (page - 1) * limit],
    )
    return [_row_to_log(row) for row in rows], total


def list_logs_for_entity(entity_type: str, entity_id: int) -> list[LogEntry]:
    db = get_db()
    rows = query_all(
        db,
        "SELECT * FROM logs WHERE entity_type = ? AND entity_id = ? ORDER BY log_id ASC",
        (entity_type, entity_id),
    )
    return [_row_to_log(row) for row in rows]
