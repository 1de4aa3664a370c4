"""Data access helpers for the users table."""

from __future__ import annotations

from typing import Optional, Union

import bcrypt

from ..models.entities import Role, User
from .db import execute, get_db, parse_timestamp, query_all, query_one


def _row_to_user(row) -> User:
    return User(
        user_id=row["user_id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        department_id=row["department_id"],
        club_id=row["club_id"],
        roll_number=row["roll_number"],
        created_at=parse_timestamp(row["created_at"]),
        is_active=bool(row["is_active"]),
    )


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_user(
    name: str,
    email: str,
    password_hash: str,
    role: Union[Role, str] = Role.STUDENT,
    department_id: Optional[int] = None,
    club_id: Optional[int] = None,
    roll_number: Optional[str] = None,
) -> User:
    """Insert a new user and return the persisted entity."""

    try:
        role = Role(role)
    except ValueError as exc:
        raise ValueError(f"Unsupported role '{role}'") from exc

    db = get_db()
    cursor = execute(
        db,
        """
        INSERT INTO users (name, email, password_hash, role, department_id, club_id, roll_number)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (name, email, password_hash, role.value, department_id, club_id, roll_number),
    )
    return get_user_by_id(cursor.lastrowid, connection=db)


def get_user_by_id(user_id: int, connection=None) -> User | None:
    """Fetch a user by primary key."""

    db = connection or get_db()
    row = query_one(
        db,
        "SELECT * FROM users WHERE user_id = ?",
        (user_id,),
    )
    return _row_to_user(row) if row else None


def get_user_by_email(email: str) -> User | None:
    """Fetch a user by unique email address."""

    db = get_db()
    row = query_one(
        db,
        "SELECT * FROM users WHERE email = ?",
        (email,),
    )
    return _row_to_user(row) if row else None


def list_users(include_inactive: bool = True) -> list[User]:
    """Return all users, optionally filtering out inactive entries."""

    db = get_db()
    query = "SELECT * FROM users"
    if not include_inactive:
        query += " WHERE is_active = 1"
    query += " ORDER BY user_id ASC"
    rows = query_all(db, query)
    return [_row_to_user(row) for row in rows]


def deactivate_user(user_id: int) -> None:
    """Soft delete a user record."""

    db = get_db()
    execute(
        db,
        "UPDATE users SET is_active = 0 WHERE user_id = ?",
        (user_id,),
    )


def verify_password(stored_hash: str, candidate: str) -> bool:
    """Compare a stored hash against a candidate password."""

    if not stored_hash:
        return False
    return bcrypt.checkpw(candidate.encode("utf-8"), stored_hash.encode("utf-8"))
