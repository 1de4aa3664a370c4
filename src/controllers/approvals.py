"""Approval workflow route shared by resource requests and room bookings."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField
from wtforms.validators import InputRequired

from ..models.entities import Action, EntityType
from ..services.approvals import apply_action
from .auth import form_errors

bp = Blueprint("approvals", __name__, url_prefix="/approvals")


class ActionForm(FlaskForm):
    """Approve, reject, cancel, override or reopen one request."""

    entity_type = SelectField(
        "Entity type",
        choices=[(entity.value, entity.value) for entity in EntityType],
        validators=[InputRequired()],
    )
    entity_id = IntegerField("Entity", validators=[InputRequired()])
    action = SelectField(
        "Action",
        choices=[(action.value, action.value) for action in Action],
        validators=[InputRequired()],
    )


@bp.route("/", methods=["POST"])
@login_required
def apply():
    form = ActionForm()
    if not form.validate_on_submit():
        return form_errors(form)

    updated = apply_action(form.entity_type.data, form.entity_id.data, form.action.data, current_user)
    return jsonify({"entity": updated.to_dict()})
