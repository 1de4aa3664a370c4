"""Approval state machine and intake tests."""

from __future__ import annotations

import pytest

from conftest import at
from src.data_access import bookings_dao, logs_dao, requests_dao
from src.models.entities import Action, EntityType, RequestStatus
from src.services import approvals
from src.services.approvals import apply_action, next_status, submit_resource_request, submit_room_booking
from src.services.errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError

RR = EntityType.RESOURCE_REQUEST
RB = EntityType.ROOM_BOOKING


def _request(student, resource, quantity=2, start=None, end=None):
    return submit_resource_request(
        resource.resource_id,
        student,
        quantity,
        start or at(4, 9),
        end or at(4, 11),
        roll_number=student.roll_number,
    )


@pytest.mark.parametrize(
    "current, action, expected",
    [
        (RequestStatus.PENDING, Action.APPROVE, RequestStatus.APPROVED),
        (RequestStatus.PENDING, Action.REJECT, RequestStatus.REJECTED),
        (RequestStatus.PENDING, Action.CANCEL, RequestStatus.CANCELLED),
        (RequestStatus.APPROVED, Action.CANCEL, RequestStatus.CANCELLED),
        (RequestStatus.APPROVED, Action.OVERRIDE, RequestStatus.OVERRIDDEN),
        (RequestStatus.WAITLISTED, Action.CANCEL, RequestStatus.CANCELLED),
        (RequestStatus.CANCELLED, Action.REOPEN, RequestStatus.PENDING),
        (RequestStatus.REJECTED, Action.REOPEN, RequestStatus.PENDING),
        (RequestStatus.OVERRIDDEN, Action.REOPEN, RequestStatus.PENDING),
    ],
)
def test_legal_transitions(current, action, expected):
    assert next_status(current, action) is expected


@pytest.mark.parametrize(
    "current, action",
    [
        (RequestStatus.WAITLISTED, Action.APPROVE),
        (RequestStatus.APPROVED, Action.APPROVE),
        (RequestStatus.APPROVED, Action.REJECT),
        (RequestStatus.CANCELLED, Action.CANCEL),
        (RequestStatus.PENDING, Action.REOPEN),
        (RequestStatus.APPROVED, Action.REOPEN),
    ],
)
def test_illegal_transitions(current, action):
    with pytest.raises(InvalidTransitionError):
        next_status(current, action)


def test_override_applies_from_every_status():
    for status in RequestStatus:
        assert approvals.TRANSITIONS[(status, Action.OVERRIDE)] is RequestStatus.OVERRIDDEN


def test_resource_request_scenario(app, laptop, student_user, other_student, cs_lab_tech):
    """Laptops: 15 approved over 9-11 leaves only 5 for an overlapping request of 10."""

    with app.app_context():
        first = _request(student_user, laptop, quantity=15, start=at(4, 9), end=at(4, 11))
        apply_action(RR, first.request_id, Action.APPROVE, cs_lab_tech)

        with pytest.raises(ValidationError, match="Only 5 units available"):
            _request(other_student, laptop, quantity=10, start=at(4, 10), end=at(4, 12))


def test_student_requests_need_a_roll_number(app, laptop, student_user):
    with app.app_context():
        with pytest.raises(ValidationError, match="Roll number"):
            submit_resource_request(laptop.resource_id, student_user, 1, at(4, 9), at(4, 10))


def test_intake_validation(app, laptop, professor_user, cs_lab_tech):
    with app.app_context():
        with pytest.raises(ValidationError):
            submit_resource_request(laptop.resource_id, professor_user, 0, at(4, 9), at(4, 10))
        with pytest.raises(ValidationError, match="before end"):
            submit_resource_request(laptop.resource_id, professor_user, 1, at(4, 10), at(4, 10))
        with pytest.raises(NotFoundError):
            submit_resource_request(9999, professor_user, 1, at(4, 9), at(4, 10))
        with pytest.raises(AuthorizationError):
            submit_resource_request(laptop.resource_id, cs_lab_tech, 1, at(4, 9), at(4, 10))
        assert requests_dao.list_requests() == []


def test_students_cannot_book_rooms(app, room, student_user, lhc_user):
    with app.app_context():
        with pytest.raises(AuthorizationError):
            submit_room_booking(room.room_id, student_user, at(4, 10), at(4, 11))
        with pytest.raises(AuthorizationError):
            submit_room_booking(room.room_id, lhc_user, at(4, 10), at(4, 11))


def test_room_booking_intake_validation(app, room, professor_user):
    with app.app_context():
        with pytest.raises(ValidationError):
            submit_room_booking(room.room_id, professor_user, at(4, 11), at(4, 10))
        with pytest.raises(NotFoundError):
            submit_room_booking(9999, professor_user, at(4, 10), at(4, 11))


def test_approve_resource_request_logs_and_notifies(app, laptop, student_user, cs_lab_tech, notifier):
    with app.app_context():
        request = _request(student_user, laptop)
        updated = apply_action(RR, request.request_id, Action.APPROVE, cs_lab_tech)

        assert updated.status is RequestStatus.APPROVED
        assert notifier.sent == [("approved", student_user.email, "Laptop")]
        entries = logs_dao.list_logs_for_entity(RR.value, request.request_id)
        assert [(e.user_id, e.role, e.action, e.old_state, e.new_state) for e in entries] == [
            (cs_lab_tech.user_id, "LAB_TECH", "APPROVE", "PENDING", "APPROVED")
        ]


def test_wrong_department_cannot_approve(app, laptop, student_user, ee_lab_tech, coding_manager):
    with app.app_context():
        request = _request(student_user, laptop)
        for approver in (ee_lab_tech, coding_manager):
            with pytest.raises(AuthorizationError):
                apply_action(RR, request.request_id, Action.APPROVE, approver)
        assert requests_dao.get_request_by_id(request.request_id).status is RequestStatus.PENDING
        assert logs_dao.list_logs_for_entity(RR.value, request.request_id) == []


def test_club_manager_approves_own_club_resources(app, arduino_kit, student_user, club_manager, coding_manager):
    with app.app_context():
        request = _request(student_user, arduino_kit)
        with pytest.raises(AuthorizationError):
            apply_action(RR, request.request_id, Action.REJECT, coding_manager)
        rejected = apply_action(RR, request.request_id, Action.REJECT, club_manager)
        assert rejected.status is RequestStatus.REJECTED


def test_approval_rechecks_availability(app, laptop, student_user, other_student, cs_lab_tech):
    with app.app_context():
        first = _request(student_user, laptop, quantity=15)
        second = _request(other_student, laptop, quantity=10)
        apply_action(RR, first.request_id, Action.APPROVE, cs_lab_tech)

        with pytest.raises(ValidationError, match="Only 5 units available"):
            apply_action(RR, second.request_id, Action.APPROVE, cs_lab_tech)
        assert requests_dao.get_request_by_id(second.request_id).status is RequestStatus.PENDING


def test_cancelling_approved_request_frees_quantity(app, laptop, student_user, other_student, cs_lab_tech):
    with app.app_context():
        first = _request(student_user, laptop, quantity=20)
        apply_action(RR, first.request_id, Action.APPROVE, cs_lab_tech)
        with pytest.raises(ValidationError):
            _request(other_student, laptop, quantity=1)

        apply_action(RR, first.request_id, Action.CANCEL, student_user)
        assert _request(other_student, laptop, quantity=20).status is RequestStatus.PENDING


def test_only_requester_or_admin_can_cancel(app, laptop, student_user, other_student, admin_user):
    with app.app_context():
        request = _request(student_user, laptop)
        with pytest.raises(AuthorizationError):
            apply_action(RR, request.request_id, Action.CANCEL, other_student)
        cancelled = apply_action(RR, request.request_id, Action.CANCEL, admin_user)
        assert cancelled.status is RequestStatus.CANCELLED


def test_reopen_requires_admin(app, laptop, student_user, admin_user, cs_lab_tech):
    with app.app_context():
        request = _request(student_user, laptop)
        apply_action(RR, request.request_id, Action.CANCEL, student_user)

        for user in (student_user, cs_lab_tech):
            with pytest.raises(AuthorizationError):
                apply_action(RR, request.request_id, Action.REOPEN, user)

        reopened = apply_action(RR, request.request_id, Action.REOPEN, admin_user)
        assert reopened.status is RequestStatus.PENDING
        last = logs_dao.list_logs_for_entity(RR.value, request.request_id)[-1]
        assert (last.action, last.old_state, last.new_state) == ("REOPEN", "CANCELLED", "PENDING")


def test_reopen_room_booking_clears_queue_position(app, room, professor_user, club_manager, admin_user):
    with app.app_context():
        bookings_dao.create_booking(
            room.room_id, professor_user.user_id, at(4, 10), at(4, 11), status=RequestStatus.APPROVED
        )
        waiting = submit_room_booking(room.room_id, club_manager, at(4, 10), at(4, 11))
        assert waiting.queue_position == 1

        overridden = apply_action(RB, waiting.booking_id, Action.OVERRIDE, admin_user)
        assert overridden.queue_position is None
        reopened = apply_action(RB, waiting.booking_id, Action.REOPEN, admin_user)
        assert reopened.status is RequestStatus.PENDING
        assert reopened.queue_position is None


def test_override_is_admin_only(app, laptop, student_user, cs_lab_tech):
    with app.app_context():
        request = _request(student_user, laptop)
        with pytest.raises(AuthorizationError):
            apply_action(RR, request.request_id, Action.OVERRIDE, cs_lab_tech)


def test_approve_from_waitlist_is_rejected(app, room, professor_user, club_manager, lhc_user):
    with app.app_context():
        bookings_dao.create_booking(
            room.room_id, professor_user.user_id, at(4, 10), at(4, 11), status=RequestStatus.APPROVED
        )
        waiting = submit_room_booking(room.room_id, club_manager, at(4, 10), at(4, 11))
        with pytest.raises(InvalidTransitionError):
            apply_action(RB, waiting.booking_id, Action.APPROVE, lhc_user)


def test_only_lhc_or_admin_approve_rooms(app, room, professor_user, other_professor, club_manager):
    with app.app_context():
        booking = submit_room_booking(room.room_id, professor_user, at(4, 10), at(4, 11))
        for user in (other_professor, club_manager):
            with pytest.raises(AuthorizationError):
                apply_action(RB, booking.booking_id, Action.APPROVE, user)


def test_approving_into_an_occupied_slot_waitlists_instead(
    app, room, professor_user, club_manager, lhc_user, notifier
):
    with app.app_context():
        first = submit_room_booking(room.room_id, professor_user, at(4, 10), at(4, 11))
        second = submit_room_booking(room.room_id, club_manager, at(4, 10, 30), at(4, 11, 30))
        apply_action(RB, first.booking_id, Action.APPROVE, lhc_user)

        queued = apply_action(RB, second.booking_id, Action.APPROVE, lhc_user)

        assert queued.status is RequestStatus.WAITLISTED
        assert queued.queue_position == 1
        assert notifier.kinds_for(club_manager.email) == []
        last = logs_dao.list_logs_for_entity(RB.value, second.booking_id)[-1]
        assert (last.action, last.old_state, last.new_state) == ("APPROVE", "PENDING", "WAITLISTED")

        apply_action(RB, first.booking_id, Action.CANCEL, professor_user)
        assert bookings_dao.get_booking_by_id(second.booking_id).status is RequestStatus.APPROVED


def test_override_of_approved_room_booking_promotes(app, room, professor_user, club_manager, admin_user, lhc_user):
    with app.app_context():
        first = submit_room_booking(room.room_id, professor_user, at(4, 10), at(4, 11))
        apply_action(RB, first.booking_id, Action.APPROVE, lhc_user)
        waiting = submit_room_booking(room.room_id, club_manager, at(4, 10), at(4, 11))

        apply_action(RB, first.booking_id, Action.OVERRIDE, admin_user)

        assert bookings_dao.get_booking_by_id(waiting.booking_id).status is RequestStatus.APPROVED


def test_unknown_entities_and_actions(app, admin_user):
    with app.app_context():
        with pytest.raises(NotFoundError):
            apply_action(RR, 9999, Action.CANCEL, admin_user)
        with pytest.raises(NotFoundError):
            apply_action(RB, 9999, Action.CANCEL, admin_user)
        with pytest.raises(ValidationError, match="Invalid action"):
            apply_action(RR, 1, "DELETE", admin_user)
        with pytest.raises(ValidationError, match="entityType"):
            apply_action("INVOICE", 1, Action.CANCEL, admin_user)


def test_notification_failure_does_not_fail_transition(app, laptop, student_user, cs_lab_tech):
    class BrokenNotifier:
        def notify(self, *args, **kwargs):
            raise ConnectionError("SMTP down")

    with app.app_context():
        app.extensions["notifier"] = BrokenNotifier()
        request = _request(student_user, laptop)
        updated = apply_action(RR, request.request_id, Action.APPROVE, cs_lab_tech)
        assert updated.status is RequestStatus.APPROVED
        assert requests_dao.get_request_by_id(request.request_id).status is RequestStatus.APPROVED


def test_overriding_an_overridden_request_is_logged(app, laptop, student_user, admin_user):
    with app.app_context():
        request = _request(student_user, laptop)
        apply_action(RR, request.request_id, Action.OVERRIDE, admin_user)
        again = apply_action(RR, request.request_id, Action.OVERRIDE, admin_user)

        assert again.status is RequestStatus.OVERRIDDEN
        last = logs_dao.list_logs_for_entity(RR.value, request.request_id)[-1]
        assert (last.action, last.old_state, last.new_state) == ("OVERRIDE", "OVERRIDDEN", "OVERRIDDEN")


def test_waitlist_is_promoted_before_requester_is_notified(app, room, professor_user, club_manager, lhc_user):
    class SnapshotNotifier:
        def __init__(self):
            self.waiting_status = None

        def notify(self, kind, recipient_email, entity_label, entity_type="Request"):
            if kind == "cancelled":
                self.waiting_status = bookings_dao.get_booking_by_id(waiting.booking_id).status

    with app.app_context():
        first = submit_room_booking(room.room_id, professor_user, at(4, 10), at(4, 11))
        apply_action(RB, first.booking_id, Action.APPROVE, lhc_user)
        waiting = submit_room_booking(room.room_id, club_manager, at(4, 10), at(4, 11))

        snapshot = SnapshotNotifier()
        app.extensions["notifier"] = snapshot
        apply_action(RB, first.booking_id, Action.CANCEL, professor_user)

        assert snapshot.waiting_status is RequestStatus.APPROVED


def test_sub_second_intervals_keep_their_precision(app, room, professor_user, club_manager, lhc_user):
    start = at(4, 10).replace(microsecond=200000)
    with app.app_context():
        short = submit_room_booking(room.room_id, professor_user, start, start.replace(microsecond=900000))
        assert (short.start_time, short.end_time) == (start, start.replace(microsecond=900000))
        apply_action(RB, short.booking_id, Action.APPROVE, lhc_user)

        # Starts exactly where the first one ends, so the half-open intervals do not meet.
        after = submit_room_booking(
            room.room_id, club_manager, start.replace(microsecond=900000), start.replace(second=1)
        )
        assert after.status is RequestStatus.PENDING

        inside = submit_room_booking(
            room.room_id, club_manager, start.replace(microsecond=500000), start.replace(second=1)
        )
        assert inside.status is RequestStatus.WAITLISTED
