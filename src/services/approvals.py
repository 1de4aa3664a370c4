"""Request intake and the approval state machine.

Resource requests and room bookings share one lifecycle::

    PENDING --APPROVE--> APPROVED --CANCEL/OVERRIDE--> CANCELLED/OVERRIDDEN
    PENDING --REJECT/CANCEL/OVERRIDE--> REJECTED/CANCELLED/OVERRIDDEN
    WAITLISTED --CANCEL/OVERRIDE--> CANCELLED/OVERRIDDEN
    REJECTED/CANCELLED/OVERRIDDEN --REOPEN--> PENDING
    any status --OVERRIDE--> OVERRIDDEN

WAITLISTED is only entered through room admission (or when a room approval
loses a race for the slot) and only left through promotion, cancellation or
override. Each transition is authorized and persisted together with its audit
log entry. When a room booking gives up an approved slot the waitlist is
promoted first, then the requester is notified.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Tuple, Union

from flask import current_app

from ..data_access import bookings_dao, logs_dao, requests_dao, resources_dao, rooms_dao, users_dao
from ..data_access.db import parse_timestamp, to_db_timestamp, transaction
from ..models.entities import (
    Action,
    EntityType,
    RequestStatus,
    ResourceRequest,
    Role,
    RoomBooking,
    User,
)
from . import policy
from .availability import available_quantity
from .errors import (
    AuthorizationError,
    ConcurrencyConflict,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .notifier import send_notification
from .waitlist import admit_booking, next_queue_position, promote_from_waitlist

S = RequestStatus
A = Action

TRANSITIONS: Dict[Tuple[RequestStatus, Action], RequestStatus] = {
    (S.PENDING, A.APPROVE): S.APPROVED,
    (S.PENDING, A.REJECT): S.REJECTED,
    (S.PENDING, A.CANCEL): S.CANCELLED,
    (S.PENDING, A.OVERRIDE): S.OVERRIDDEN,
    (S.WAITLISTED, A.CANCEL): S.CANCELLED,
    (S.WAITLISTED, A.OVERRIDE): S.OVERRIDDEN,
    (S.APPROVED, A.CANCEL): S.CANCELLED,
    (S.APPROVED, A.OVERRIDE): S.OVERRIDDEN,
    (S.REJECTED, A.OVERRIDE): S.OVERRIDDEN,
    (S.CANCELLED, A.OVERRIDE): S.OVERRIDDEN,
    (S.OVERRIDDEN, A.OVERRIDE): S.OVERRIDDEN,
    (S.REJECTED, A.REOPEN): S.PENDING,
    (S.CANCELLED, A.REOPEN): S.PENDING,
    (S.OVERRIDDEN, A.REOPEN): S.PENDING,
}

NOTIFICATION_FOR_ACTION = {
    A.APPROVE: "approved",
    A.REJECT: "rejected",
    A.CANCEL: "cancelled",
}

TimeValue = Union[str, datetime]


def next_status(current: RequestStatus, action: Action) -> RequestStatus:
    """Look up the transition table; illegal pairs raise InvalidTransitionError."""

    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {action.value.lower()} a request that is {current.value.lower()}."
        ) from None


def _normalize_interval(start: TimeValue, end: TimeValue) -> Tuple[datetime, datetime]:
    try:
        start_dt = parse_timestamp(to_db_timestamp(start))
        end_dt = parse_timestamp(to_db_timestamp(end))
    except (TypeError, ValueError) as exc:
        raise ValidationError("Start and end times must be valid timestamps.") from exc
    if start_dt >= end_dt:
        raise ValidationError("Start time must be before end time.")
    return start_dt, end_dt


def _authorize(action: Action, user: User, requester_id: int, can_approve: bool) -> None:
    if action in (A.OVERRIDE, A.REOPEN):
        if not policy.is_admin(user):
            raise AuthorizationError("Only admin can override or reopen requests.")
    elif action in (A.APPROVE, A.REJECT):
        if not can_approve:
            raise AuthorizationError("You don't have permission to approve or reject this request.")
    elif action is A.CANCEL:
        if not policy.can_cancel(user, requester_id):
            raise AuthorizationError("Only the requester or admin can cancel.")


def _notify_requester(action: Action, requester_id: int, label: str, entity_type: str) -> None:
    kind = NOTIFICATION_FOR_ACTION.get(action)
    if kind is None:
        return
    requester = users_dao.get_user_by_id(requester_id)
    send_notification(kind, requester.email if requester else None, label, entity_type=entity_type)


# Intake


def submit_resource_request(
    resource_id: int,
    requester: User,
    quantity: int,
    start: TimeValue,
    end: TimeValue,
    roll_number: Optional[str] = None,
    reason: Optional[str] = None,
) -> ResourceRequest:
    """Validate and record a new PENDING resource request.

    The requested quantity must fit in what approved requests leave free over
    the interval at the moment of submission.
    """

    if not policy.can_request_resource(requester):
        raise AuthorizationError("You don't have permission to request resources.")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be at least 1.")
    start_dt, end_dt = _normalize_interval(start, end)
    if requester.role is Role.STUDENT and not roll_number:
        raise ValidationError("Roll number is required for student requests.")

    with transaction():
        resource = resources_dao.get_resource_by_id(resource_id)
        if resource is None:
            raise NotFoundError("Resource not found.")
        available = available_quantity(resource_id, start_dt, end_dt)
        if quantity > available:
            raise ValidationError(
                f"Only {available} units available for the requested time period. Cannot over-request."
            )
        request = requests_dao.create_request(
            resource_id,
            requester.user_id,
            quantity,
            start_dt,
            end_dt,
            roll_number=roll_number or None,
            reason=reason or None,
        )

    current_app.logger.info(
        "User %s requested %s x resource %s (request %s)",
        requester.user_id,
        quantity,
        resource_id,
        request.request_id,
    )
    return request


def submit_room_booking(
    room_id: int,
    requester: User,
    start: TimeValue,
    end: TimeValue,
    purpose: Optional[str] = None,
) -> RoomBooking:
    """Validate a room booking and hand it to the waitlist engine."""

    if not policy.can_book_room(requester):
        raise AuthorizationError("Students cannot book rooms. Only professors and club managers can.")
    start_dt, end_dt = _normalize_interval(start, end)
    if rooms_dao.get_room_by_id(room_id) is None:
        raise NotFoundError("Room not found.")
    return admit_booking(room_id, requester.user_id, start_dt, end_dt, purpose or None)


# State machine


def apply_action(
    entity_type: Union[EntityType, str],
    entity_id: int,
    action: Union[Action, str],
    acting_user: User,
) -> Union[ResourceRequest, RoomBooking]:
    """Apply one action to a resource request or room booking."""

    try:
        entity_type = EntityType(entity_type)
    except ValueError:
        raise ValidationError("entityType must be RESOURCE_REQUEST or ROOM_BOOKING.") from None
    try:
        action = Action(action)
    except ValueError:
        valid = ", ".join(member.value for member in Action)
        raise ValidationError(f"Invalid action. Must be one of: {valid}") from None

    if entity_type is EntityType.RESOURCE_REQUEST:
        return _apply_resource_action(entity_id, action, acting_user)
    return _apply_room_action(entity_id, action, acting_user)


def _apply_resource_action(request_id: int, action: Action, user: User) -> ResourceRequest:
    with transaction():
        request = requests_dao.get_request_by_id(request_id)
        if request is None:
            raise NotFoundError("Resource request not found.")
        resource = resources_dao.get_resource_by_id(request.resource_id)
        if resource is None:
            raise NotFoundError("Resource not found.")
        _authorize(action, user, request.requester_id, policy.can_approve_resource(user, resource))
        new_status = next_status(request.status, action)

        if new_status is S.APPROVED:
            available = available_quantity(
                resource.resource_id,
                request.start_time,
                request.end_time,
                exclude_request_id=request.request_id,
            )
            if request.quantity > available:
                raise ValidationError(f"Only {available} units available for the requested time period.")

        updated = requests_dao.update_status(request.request_id, new_status)
        logs_dao.append_log(
            user.user_id,
            user.role.value,
            action.value,
            EntityType.RESOURCE_REQUEST.value,
            request.request_id,
            request.status.value,
            updated.status.value,
        )

    current_app.logger.info(
        "Resource request %s: %s -> %s by user %s",
        request.request_id,
        request.status.value,
        updated.status.value,
        user.user_id,
    )
    _notify_requester(action, request.requester_id, resource.name, "Resource")
    return updated


def _apply_room_action(booking_id: int, action: Action, user: User) -> RoomBooking:
    with transaction():
        booking = bookings_dao.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Room booking not found.")
        _authorize(action, user, booking.requester_id, policy.can_approve_room(user))
        new_status = next_status(booking.status, action)

        try:
            updated = bookings_dao.update_status(booking.booking_id, new_status)
        except ConcurrencyConflict:
            # Another approved booking holds the slot: queue behind it instead.
            position = next_queue_position(booking.room_id, booking.start_time, booking.end_time)
            updated = bookings_dao.update_status(booking.booking_id, S.WAITLISTED, queue_position=position)

        logs_dao.append_log(
            user.user_id,
            user.role.value,
            action.value,
            EntityType.ROOM_BOOKING.value,
            booking.booking_id,
            booking.status.value,
            updated.status.value,
        )

    current_app.logger.info(
        "Room booking %s: %s -> %s by user %s",
        booking.booking_id,
        booking.status.value,
        updated.status.value,
        user.user_id,
    )

    # Hand the freed slot on before any slow mail delivery.
    if booking.status is S.APPROVED and updated.status is not S.APPROVED:
        promote_from_waitlist(booking.room_id, booking.start_time, booking.end_time, actor=user)

    if updated.status is new_status:
        room = rooms_dao.get_room_by_id(booking.room_id)
        label = room.name if room else f"Room #{booking.room_id}"
        _notify_requester(action, booking.requester_id, label, "Room Booking")
    return updated
