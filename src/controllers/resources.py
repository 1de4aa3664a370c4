"""Resource inventory and resource request routes."""

from __future__ import annotations

import json

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import DateTimeField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import InputRequired, Length, NumberRange, Optional

from ..data_access import logs_dao, requests_dao, resources_dao
from ..data_access.db import to_db_timestamp
from ..models.entities import OwnerType, Role
from ..services import policy
from ..services.approvals import submit_resource_request
from ..services.availability import available_quantity
from ..services.errors import AuthorizationError, NotFoundError, ValidationError
from .auth import form_errors

bp = Blueprint("resources", __name__, url_prefix="/resources")

DATETIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M"]


class ResourceForm(FlaskForm):
    """Form to add a resource to a department or club inventory."""

    name = StringField("Name", validators=[InputRequired(), Length(max=120)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=2000)])
    quantity = IntegerField("Quantity", validators=[NumberRange(min=0)])
    owner_type = SelectField(
        "Owner type",
        choices=[(owner.value, owner.value.title()) for owner in OwnerType],
        validators=[InputRequired()],
    )
    department_id = IntegerField("Department", validators=[Optional()])
    club_id = IntegerField("Club", validators=[Optional()])


class ResourceRequestForm(FlaskForm):
    """Form to reserve units of a resource."""

    resource_id = IntegerField("Resource", validators=[InputRequired()])
    quantity = IntegerField(
        "Quantity",
        validators=[InputRequired(message="Quantity must be at least 1."), NumberRange(min=1)],
    )
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
    roll_number = StringField("Roll number", validators=[Optional(), Length(max=40)])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=1000)])


def _query_interval() -> tuple[str, str]:
    start = request.args.get("start")
    end = request.args.get("end")
    if not start or not end:
        raise ValidationError("start and end query parameters are required.")
    try:
        return to_db_timestamp(start), to_db_timestamp(end)
    except ValueError as exc:
        raise ValidationError("start and end must be ISO timestamps.") from exc


@bp.route("/", methods=["GET"])
@login_required
def list_resources():
    """List resources; club inventories are hidden from roles that may not browse them."""

    owner_type = request.args.get("owner_type") or None
    owner_id = request.args.get("owner_id", type=int)
    if owner_type and owner_type not in {owner.value for owner in OwnerType}:
        raise ValidationError("owner_type must be DEPARTMENT or CLUB.")

    if owner_type == OwnerType.CLUB.value and not policy.can_view_club_resources(current_user):
        raise AuthorizationError("You don't have permission to view club resources.")
    if not owner_type and not policy.can_view_club_resources(current_user):
        owner_type = OwnerType.DEPARTMENT.value
        owner_id = None

    resources = resources_dao.list_resources(owner_type=owner_type, owner_id=owner_id)
    return jsonify({"resources": [resource.to_dict() for resource in resources]})


@bp.route("/", methods=["POST"])
@login_required
def create():
    """Add a resource; club managers stock their club, admins stock anything."""

    form = ResourceForm()
    if not form.validate_on_submit():
        return form_errors(form)

    owner_type = OwnerType(form.owner_type.data)
    if owner_type is OwnerType.CLUB:
        if not form.club_id.data:
            raise ValidationError("club_id is required for club resources.")
        if not policy.can_manage_club_resources(current_user, form.club_id.data):
            raise AuthorizationError("You don't have permission to add resources to this club.")
        department_id, club_id = None, form.club_id.data
    else:
        if not form.department_id.data:
            raise ValidationError("department_id is required for department resources.")
        if not policy.can_manage_department_resources(current_user):
            raise AuthorizationError("Only admin can add department resources.")
        department_id, club_id = form.department_id.data, None

    resource = resources_dao.create_resource(
        name=form.name.data,
        quantity=form.quantity.data,
        owner_type=owner_type,
        department_id=department_id,
        club_id=club_id,
        description=form.description.data or None,
    )
    logs_dao.append_log(
        current_user.user_id,
        current_user.role.value,
        "ADD_RESOURCE",
        "RESOURCE",
        resource.resource_id,
        None,
        json.dumps(resource.to_dict()),
    )
    return jsonify({"resource": resource.to_dict()}), 201


@bp.route("/<int:resource_id>", methods=["DELETE"])
@login_required
def remove(resource_id: int):
    """Remove a resource that has no request history."""

    resource = resources_dao.get_resource_by_id(resource_id)
    if not resource:
        raise NotFoundError("Resource not found.")
    if resource.owner_type is OwnerType.CLUB:
        if not policy.can_manage_club_resources(current_user, resource.club_id):
            raise AuthorizationError("You don't have permission to remove this resource.")
    elif not policy.can_manage_department_resources(current_user):
        raise AuthorizationError("Only admin can remove department resources.")
    if resources_dao.count_requests_for_resource(resource_id):
        raise ValidationError("Resources with request history cannot be removed.")

    resources_dao.delete_resource(resource_id)
    logs_dao.append_log(
        current_user.user_id,
        current_user.role.value,
        "REMOVE_RESOURCE",
        "RESOURCE",
        resource_id,
        json.dumps(resource.to_dict()),
        None,
    )
    return jsonify({"message": "Resource deleted"})


@bp.route("/<int:resource_id>/availability")
@login_required
def availability(resource_id: int):
    """Report how many units are free over ``start``..``end``."""

    resource = resources_dao.get_resource_by_id(resource_id)
    if not resource:
        raise NotFoundError("Resource not found.")
    start, end = _query_interval()
    if start >= end:
        raise ValidationError("Start time must be before end time.")
    return jsonify(
        {
            "resource_id": resource_id,
            "quantity": resource.quantity,
            "available": available_quantity(resource_id, start, end),
        }
    )


@bp.route("/requests", methods=["POST"])
@login_required
def create_request():
    """Submit a resource request."""

    form = ResourceRequestForm()
    if not form.validate_on_submit():
        return form_errors(form)

    resource_request = submit_resource_request(
        form.resource_id.data,
        current_user,
        form.quantity.data,
        form.start_time.data,
        form.end_time.data,
        roll_number=form.roll_number.data,
        reason=form.reason.data,
    )
    return jsonify({"request": resource_request.to_dict()}), 201


@bp.route("/requests", methods=["GET"])
@login_required
def list_requests():
    """List requests; approvers see the requests against their own inventory."""

    mine = request.args.get("mine") == "true"
    status = request.args.get("status") or None
    try:
        filters = {"status": status}
        if mine:
            filters["requester_id"] = current_user.user_id
        if current_user.role is Role.LAB_TECH and current_user.department_id:
            filters.update(owner_type=OwnerType.DEPARTMENT, owner_id=current_user.department_id)
        elif current_user.role is Role.CLUB_MANAGER and current_user.club_id and not mine:
            filters.update(owner_type=OwnerType.CLUB, owner_id=current_user.club_id)
        requests = requests_dao.list_requests(**filters)
    except ValueError as exc:
        raise ValidationError(f"Unknown status '{status}'.") from exc
    return jsonify({"requests": [item.to_dict() for item in requests]})
