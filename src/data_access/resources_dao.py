"""Data access helpers for resources and their owning departments and clubs."""

from __future__ import annotations

from typing import Optional, Union

from ..models.entities import Club, Department, OwnerType, Resource
from .db import execute, get_db, parse_timestamp, query_all, query_one


def _row_to_resource(row) -> Resource:
    return Resource(
        resource_id=row["resource_id"],
        name=row["name"],
        description=row["description"],
        quantity=row["quantity"],
        owner_type=OwnerType(row["owner_type"]),
        department_id=row["department_id"],
        club_id=row["club_id"],
        created_at=parse_timestamp(row["created_at"]),
    )


def create_resource(
    name: str,
    quantity: int,
    owner_type: Union[OwnerType, str],
    department_id: Optional[int] = None,
    club_id: Optional[int] = None,
    description: Optional[str] = None,
) -> Resource:
    """Insert a new resource."""

    owner_type = OwnerType(owner_type)
    db = get_db()
    cursor = execute(
        db,
        """
        INSERT INTO resources (name, description, quantity, owner_type, department_id, club_id)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (name, description, quantity, owner_type.value, department_id, club_id),
    )
    return get_resource_by_id(cursor.lastrowid, connection=db)


def delete_resource(resource_id: int) -> None:
    db = get_db()
    execute(db, "DELETE FROM resources WHERE resource_id = ?", (resource_id,))


def get_resource_by_id(resource_id: int, connection=None) -> Resource | None:
    """Fetch a single resource."""

    db = connection or get_db()
    row = query_one(db, "SELECT * FROM resources WHERE resource_id = ?", (resource_id,))
    return _row_to_resource(row) if row else None


def list_resources(
    owner_type: Optional[Union[OwnerType, str]] = None,
    owner_id: Optional[int] = None,
) -> list[Resource]:
    """Return resources, optionally narrowed to one owner type or owner."""

    db = get_db()
    query = "SELECT * FROM resources WHERE 1 = 1"
    params: list = []
    if owner_type:
        owner_type = OwnerType(owner_type)
        query += " AND owner_type = ?"
        params.append(owner_type.value)
        if owner_id is not None:
            column = "club_id" if owner_type is OwnerType.CLUB else "department_id"
            query += f" AND {column} = ?"
            params.append(owner_id)
    query += " ORDER BY name ASC"
    rows = query_all(db, query, params)
    return [_row_to_resource(row) for row in rows]


def count_requests_for_resource(resource_id: int) -> int:
    db = get_db()
    row = query_one(
        db,
        "SELECT COUNT(*) AS total FROM resource_requests WHERE resource_id = ?",
        (resource_id,),
    )
    return row["total"] if row else 0


def create_department(name: str) -> Department:
    db = get_db()
    cursor = execute(db, "INSERT INTO departments (name) VALUES (?)", (name,))
    return Department(department_id=cursor.lastrowid, name=name)


def create_club(name: str) -> Club:
    db = get_db()
    cursor = execute(db, "INSERT INTO clubs (name) VALUES (?)", (name,))
    return Club(club_id=cursor.lastrowid, name=name)


def get_department_by_name(name: str) -> Department | None:
    db = get_db()
    row = query_one(db, "SELECT * FROM departments WHERE name = ?", (name,))
    return Department(department_id=row["department_id"], name=row["name"]) if row else None


def get_club_by_name(name: str) -> Club | None:
    db = get_db()
    row = query_one(db, "SELECT * FROM clubs WHERE name = ?", (name,))
    return Club(club_id=row["club_id"], name=row["name"]) if row else None
