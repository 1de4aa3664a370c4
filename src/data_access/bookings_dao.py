"""Data access helpers for room bookings."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional, Union

from ..models.entities import RequestStatus, RoomBooking
from ..services.errors import ConcurrencyConflict
from .db import execute, get_db, parse_timestamp, query_all, query_one, to_db_timestamp

OVERLAP_VIOLATION = "room booking overlaps an approved booking"


def _row_to_booking(row) -> RoomBooking:
    return RoomBooking(
        booking_id=row["booking_id"],
        room_id=row["room_id"],
        requester_id=row["requester_id"],
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        purpose=row["purpose"],
        status=RequestStatus(row["status"]),
        queue_position=row["queue_position"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def create_booking(
    room_id: int,
    requester_id: int,
    start_time: Union[str, datetime],
    end_time: Union[str, datetime],
    status: RequestStatus = RequestStatus.PENDING,
    purpose: Optional[str] = None,
    queue_position: Optional[int] = None,
) -> RoomBooking:
    """Insert a room booking with an already decided status."""

    db = get_db()
    try:
        cursor = execute(
            db,
            """
            INSERT INTO room_bookings (
                room_id, requester_id, start_time, end_time, purpose, status, queue_position
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                room_id,
                requester_id,
                to_db_timestamp(start_time),
                to_db_timestamp(end_time),
                purpose,
                RequestStatus(status).value,
                queue_position,
            ),
        )
    except sqlite3.IntegrityError as exc:
        if OVERLAP_VIOLATION in str(exc):
            raise ConcurrencyConflict("The room is already booked for this time.") from exc
        raise
    return get_booking_by_id(cursor.lastrowid, connection=db)


def get_booking_by_id(booking_id: int, connection=None) -> RoomBooking | None:
    """Fetch a specific booking."""

    db = connection or get_db()
    row = query_one(
        db,
        "SELECT * FROM room_bookings WHERE booking_id = ?",
        (booking_id,),
    )
    return _row_to_booking(row) if row else None


def update_status(
    booking_id: int,
    status: RequestStatus,
    queue_position: Optional[int] = None,
) -> RoomBooking:
    """Persist a new status; the queue position only survives while WAITLISTED."""

    status = RequestStatus(status)
    if status is not RequestStatus.WAITLISTED:
        queue_position = None
    db = get_db()
    try:
        execute(
            db,
            """
            UPDATE room_bookings
            SET status = ?, queue_position = ?, updated_at = CURRENT_TIMESTAMP
            WHERE booking_id = ?
            """,
            (status.value, queue_position, booking_id),
        )
    except sqlite3.IntegrityError as exc:
        if OVERLAP_VIOLATION in str(exc):
            raise ConcurrencyConflict("The room is already booked for this time.") from exc
        raise
    return get_booking_by_id(booking_id, connection=db)


def find_overlapping_approved(
    room_id: int,
    start_time: Union[str, datetime],
    end_time: Union[str, datetime],
    exclude_booking_id: Optional[int] = None,
) -> list[RoomBooking]:
    """Return APPROVED bookings on the room overlapping [start, end)."""

    db = get_db()
    query = """
        SELECT * FROM room_bookings
        WHERE room_id = ?
          AND status = 'APPROVED'
          AND start_time < ?
          AND end_time > ?
    """
    params: list = [room_id, to_db_timestamp(end_time), to_db_timestamp(start_time)]
    if exclude_booking_id is not None:
        query += " AND booking_id != ?"
        params.append(exclude_booking_id)
    query += " ORDER BY start_time ASC"
    rows = query_all(db, query, params)
    return [_row_to_booking(row) for row in rows]


def list_waitlisted_overlapping(
    room_id: int,
    start_time: Union[str, datetime],
    end_time: Union[str, datetime],
) -> list[RoomBooking]:
    """WAITLISTED bookings overlapping [start, end), earliest in line first."""

    db = get_db()
    rows = query_all(
        db,
        """
        SELECT * FROM room_bookings
        WHERE room_id = ?
          AND status = 'WAITLISTED'
          AND start_time < ?
          AND end_time > ?
        ORDER BY queue_position ASC, booking_id ASC
        """,
        (room_id, to_db_timestamp(end_time), to_db_timestamp(start_time)),
    )
    return [_row_to_booking(row) for row in rows]


def max_queue_position(
    room_id: int,
    start_time: Union[str, datetime],
    end_time: Union[str, datetime],
) -> int:
    """Highest queue position in the overlap cohort, 0 when the cohort is empty."""

    db = get_db()
    row = query_one(
        db,
        """
        SELECT COALESCE(MAX(queue_position), 0) AS highest
        FROM room_bookings
        WHERE room_id = ?
          AND status = 'WAITLISTED'
          AND start_time < ?
          AND end_time > ?
        """,
        (room_id, to_db_timestamp(end_time), to_db_timestamp(start_time)),
    )
    return row["highest"] if row else 0


def list_bookings(
    requester_id: Optional[int] = None,
    status: Optional[Union[RequestStatus, str]] = None,
    room_id: Optional[int] = None,
) -> list[RoomBooking]:
    """Return bookings filtered by requester, status or room, newest first."""

    db = get_db()
    query = "SELECT * FROM room_bookings WHERE 1 = 1"
    params: list = []
    if requester_id is not None:
        query += " AND requester_id = ?"
        params.append(requester_id)
    if status:
        query += " AND status = ?"
        params.append(RequestStatus(status).value)
    if room_id is not None:
        query += " AND room_id = ?"
        params.append(room_id)
    query += " ORDER BY created_at DESC, booking_id DESC"
    rows = query_all(db, query, params)
    return [_row_to_booking(row) for row in rows]


def list_approved_between(
    week_start: Optional[Union[str, datetime]] = None,
    week_end: Optional[Union[str, datetime]] = None,
) -> list[RoomBooking]:
    """APPROVED bookings fully inside the window, for calendar views."""

    db = get_db()
    query = "SELECT * FROM room_bookings WHERE status = 'APPROVED'"
    params: list = []
    if week_start and week_end:
        query += " AND start_time >= ? AND end_time <= ?"
        params.extend([to_db_timestamp(week_start), to_db_timestamp(week_end)])
    query += " ORDER BY start_time ASC"
    rows = query_all(db, query, params)
    return [_row_to_booking(row) for row in rows]
