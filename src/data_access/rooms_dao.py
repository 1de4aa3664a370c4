"""Data access helpers for rooms."""

from __future__ import annotations

from typing import Optional

from ..models.entities import Room
from .db import execute, get_db, query_all, query_one


def _row_to_room(row) -> Room:
    return Room(
        room_id=row["room_id"],
        name=row["name"],
        capacity=row["capacity"],
        location=row["location"],
    )


def create_room(name: str, capacity: int, location: Optional[str] = None) -> Room:
    db = get_db()
    cursor = execute(
        db,
        "INSERT INTO rooms (name, capacity, location) VALUES (?, ?, ?)",
        (name, capacity, location),
    )
    return get_room_by_id(cursor.lastrowid, connection=db)


def get_room_by_id(room_id: int, connection=None) -> Room | None:
    db = connection or get_db()
    row = query_one(db, "SELECT * FROM rooms WHERE room_id = ?", (room_id,))
    return _row_to_room(row) if row else None


def get_room_by_name(name: str) -> Room | None:
    db = get_db()
    row = query_one(db, "SELECT * FROM rooms WHERE name = ?", (name,))
    return _row_to_room(row) if row else None


def list_rooms() -> list[Room]:
    db = get_db()
    rows = query_all(db, "SELECT * FROM rooms ORDER BY name ASC")
    return [_row_to_room(row) for row in rows]
