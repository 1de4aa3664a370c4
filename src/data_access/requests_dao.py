"""Data access helpers for resource requests."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional, Union

from ..models.entities import OwnerType, RequestStatus, ResourceRequest
from ..services.errors import ConcurrencyConflict
from .db import execute, get_db, parse_timestamp, query_all, query_one, to_db_timestamp

QUANTITY_VIOLATION = "resource request exceeds available quantity"


def _row_to_request(row) -> ResourceRequest:
    return ResourceRequest(
        request_id=row["request_id"],
        resource_id=row["resource_id"],
        requester_id=row["requester_id"],
        quantity=row["quantity"],
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        status=RequestStatus(row["status"]),
        roll_number=row["roll_number"],
        reason=row["reason"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def create_request(
    resource_id: int,
    requester_id: int,
    quantity: int,
    start_time: Union[str, datetime],
    end_time: Union[str, datetime],
    roll_number: Optional[str] = None,
    reason: Optional[str] = None,
    status: RequestStatus = RequestStatus.PENDING,
) -> ResourceRequest:
    """Insert a resource request."""

    db = get_db()
    try:
        cursor = execute(
            db,
            """
            INSERT INTO resource_requests (
                resource_id, requester_id, quantity, start_time, end_time,
                status, roll_number, reason
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                resource_id,
                requester_id,
                quantity,
                to_db_timestamp(start_time),
                to_db_timestamp(end_time),
                RequestStatus(status).value,
                roll_number,
                reason,
            ),
        )
    except sqlite3.IntegrityError as exc:
        if QUANTITY_VIOLATION in str(exc):
            raise ConcurrencyConflict("Not enough units available for the requested time period.") from exc
        raise
    return get_request_by_id(cursor.lastrowid, connection=db)


def get_request_by_id(request_id: int, connection=None) -> ResourceRequest | None:
    db = connection or get_db()
    row = query_one(
        db,
        "SELECT * FROM resource_requests WHERE request_id = ?",
        (request_id,),
    )
    return _row_to_request(row) if row else None


def update_status(request_id: int, status: RequestStatus) -> ResourceRequest:
    """Persist a new status for a request."""

    db = get_db()
    try:
        execute(
            db,
            """
            UPDATE resource_requests
            SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE request_id = ?
            """,
            (RequestStatus(status).value, request_id),
        )
    except sqlite3.IntegrityError as exc:
        if QUANTITY_VIOLATION in str(exc):
            raise ConcurrencyConflict("Not enough units available for the requested time period.") from exc
        raise
    return get_request_by_id(request_id, connection=db)


def find_overlapping_approved(
    resource_id: int,
    start_time: Union[str, datetime],
    end_time: Union[str, datetime],
    exclude_request_id: Optional[int] = None,
) -> list[ResourceRequest]:
    """Return APPROVED requests on the resource overlapping [start, end)."""

    db = get_db()
    query = """
        SELECT * FROM resource_requests
        WHERE resource_id = ?
          AND status = 'APPROVED'
          AND start_time < ?
          AND end_time > ?
    """
    params: list = [resource_id, to_db_timestamp(end_time), to_db_timestamp(start_time)]
    if exclude_request_id is not None:
        query += " AND request_id != ?"
        params.append(exclude_request_id)
    rows = query_all(db, query, params)
    return [_row_to_request(row) for row in rows]


def list_requests(
    requester_id: Optional[int] = None,
    status: Optional[Union[RequestStatus, str]] = None,
    owner_type: Optional[OwnerType] = None,
    owner_id: Optional[int] = None,
) -> list[ResourceRequest]:
    """Return requests, optionally scoped to a requester or to one owner's resources."""

    db = get_db()
    query = """
        SELECT rr.*
        FROM resource_requests rr
        JOIN resources r ON r.resource_id = rr.resource_id
        WHERE 1 = 1
    """
    params: list = []
    if requester_id is not None:
        query += " AND rr.requester_id = ?"
        params.append(requester_id)
    if status:
        query += " AND rr.status = ?"
        params.append(RequestStatus(status).value)
    if owner_type is not None:
        query += " AND r.owner_type = ?"
        params.append(OwnerType(owner_type).value)
        if owner_id is not None:
            column = "r.club_id" if OwnerType(owner_type) is OwnerType.CLUB else "r.department_id"
            query += f" AND {column} = ?"
            params.append(owner_id)
    query += " ORDER BY rr.created_at DESC, rr.request_id DESC"
    rows = query_all(db, query, params)
    return [_row_to_request(row) for row in rows]
