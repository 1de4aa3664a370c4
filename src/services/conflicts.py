"""Room conflict detection."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from ..data_access import bookings_dao


def has_conflict(
    room_id: int,
    start: Union[str, datetime],
    end: Union[str, datetime],
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """Return True when an APPROVED booking on the room overlaps [start, end)."""

    return bool(
        bookings_dao.find_overlapping_approved(room_id, start, end, exclude_booking_id=exclude_booking_id)
    )
