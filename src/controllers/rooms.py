"""Room listing and room booking routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import DateTimeField, IntegerField, TextAreaField
from wtforms.validators import InputRequired, Length, Optional

from ..data_access import bookings_dao, rooms_dao
from ..data_access.db import to_db_timestamp
from ..services.approvals import submit_room_booking
from ..services.errors import ValidationError
from .auth import form_errors
from .resources import DATETIME_FORMATS

bp = Blueprint("rooms", __name__, url_prefix="/rooms")


class RoomBookingForm(FlaskForm):
    """Form to request a room for an interval."""

    room_id = IntegerField("Room", validators=[InputRequired()])
    start_time = DateTimeField(
        "Start",
        format=DATETIME_FORMATS,
        validators=[InputRequired(message="Please provide a start time.")],
    )
    end_time = DateTimeField(
        "End",
        format=DATETIME_FORMATS,
        validators=[InputRequired(message="Please provide an end time.")],
    )
    purpose = TextAreaField("Purpose", validators=[Optional(), Length(max=500)])


@bp.route("/", methods=["GET"])
@login_required
def list_rooms():
    rooms = rooms_dao.list_rooms()
    return jsonify({"rooms": [room.to_dict() for room in rooms]})


@bp.route("/bookings", methods=["POST"])
@login_required
def book():
    """Book a room; overlapping an approved booking lands on the waitlist."""

    form = RoomBookingForm()
    if not form.validate_on_submit():
        return form_errors(form)

    booking = submit_room_booking(
        form.room_id.data,
        current_user,
        form.start_time.data,
        form.end_time.data,
        purpose=form.purpose.data,
    )
    return jsonify({"booking": booking.to_dict()}), 201


@bp.route("/bookings", methods=["GET"])
@login_required
def list_bookings():
    """List bookings filtered by ``mine``, ``status`` and ``room_id``."""

    status = request.args.get("status") or None
    try:
        bookings = bookings_dao.list_bookings(
            requester_id=current_user.user_id if request.args.get("mine") == "true" else None,
            status=status,
            room_id=request.args.get("room_id", type=int),
        )
    except ValueError as exc:
        raise ValidationError(f"Unknown status '{status}'.") from exc
    return jsonify({"bookings": [booking.to_dict() for booking in bookings]})


@bp.route("/approved")
@login_required
def approved():
    """Approved bookings for the calendar, optionally limited to one week."""

    week_start = request.args.get("week_start")
    week_end = request.args.get("week_end")
    try:
        if week_start and week_end:
            week_start, week_end = to_db_timestamp(week_start), to_db_timestamp(week_end)
    except ValueError as exc:
        raise ValidationError("week_start and week_end must be ISO timestamps.") from exc
    bookings = bookings_dao.list_approved_between(week_start, week_end)
    return jsonify({"bookings": [booking.to_dict() for booking in bookings]})
