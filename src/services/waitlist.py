"""Room admission and waitlist promotion.

A new booking that overlaps an APPROVED booking joins the waitlist of its
overlap cohort: the WAITLISTED bookings on the same room whose intervals
overlap its own. Queue positions are numbered within that cohort, so two
disjoint time ranges on one room never block each other. When an approved
booking frees its slot, the earliest waitlisted booking that no longer
conflicts is promoted, and only one booking is promoted per freed slot.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from flask import current_app

from ..data_access import bookings_dao, logs_dao, rooms_dao, users_dao
from ..data_access.db import transaction
from ..models.entities import EntityType, RequestStatus, RoomBooking, User
from .conflicts import has_conflict
from .errors import ConcurrencyConflict
from .notifier import send_notification

PROMOTE_ACTION = "PROMOTE"


def next_queue_position(
    room_id: int,
    start: Union[str, datetime],
    end: Union[str, datetime],
) -> int:
    """Position a new arrival takes at the back of its overlap cohort."""

    return bookings_dao.max_queue_position(room_id, start, end) + 1


def admit_booking(
    room_id: int,
    requester_id: int,
    start: Union[str, datetime],
    end: Union[str, datetime],
    purpose: Optional[str] = None,
) -> RoomBooking:
    """Create a booking as WAITLISTED when the slot is taken, PENDING otherwise.

    PENDING still needs approval; a free slot only means it could be approved.
    The caller validates that ``start < end``.
    """

    with transaction():
        if has_conflict(room_id, start, end):
            position = next_queue_position(room_id, start, end)
            booking = bookings_dao.create_booking(
                room_id,
                requester_id,
                start,
                end,
                status=RequestStatus.WAITLISTED,
                purpose=purpose,
                queue_position=position,
            )
        else:
            booking = bookings_dao.create_booking(
                room_id,
                requester_id,
                start,
                end,
                status=RequestStatus.PENDING,
                purpose=purpose,
            )

    current_app.logger.info(
        "Room %s booking %s admitted as %s (queue position %s)",
        room_id,
        booking.booking_id,
        booking.status.value,
        booking.queue_position,
    )
    return booking


def promote_from_waitlist(
    room_id: int,
    start: Union[str, datetime],
    end: Union[str, datetime],
    actor: Optional[User] = None,
) -> RoomBooking | None:
    """Promote at most one waitlisted booking overlapping the freed interval.

    ``actor`` is the user whose action freed the slot; the promotion is
    recorded in the audit log under their name. Returns ``None`` when no
    waitlisted booking can take the slot.
    """

    promoted: RoomBooking | None = None
    with transaction():
        for candidate in bookings_dao.list_waitlisted_overlapping(room_id, start, end):
            if has_conflict(room_id, candidate.start_time, candidate.end_time, candidate.booking_id):
                continue
            try:
                promoted = bookings_dao.update_status(candidate.booking_id, RequestStatus.APPROVED)
            except ConcurrencyConflict:
                continue
            logs_dao.append_log(
                actor.user_id if actor else None,
                actor.role.value if actor else None,
                PROMOTE_ACTION,
                EntityType.ROOM_BOOKING.value,
                candidate.booking_id,
                RequestStatus.WAITLISTED.value,
                RequestStatus.APPROVED.value,
            )
            break

    if promoted is None:
        current_app.logger.debug("No waitlisted booking qualifies for room %s", room_id)
        return None

    current_app.logger.info("Promoted booking %s on room %s from the waitlist", promoted.booking_id, room_id)
    requester = users_dao.get_user_by_id(promoted.requester_id)
    room = rooms_dao.get_room_by_id(room_id)
    send_notification(
        "promoted",
        requester.email if requester else None,
        room.name if room else f"Room #{room_id}",
        entity_type="Room Booking",
    )
    return promoted
