"""Authentication blueprint handling login, logout and the session identity."""

from __future__ import annotations

from functools import wraps
from typing import Callable

from flask import Blueprint, abort, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from wtforms import PasswordField, StringField
from wtforms.validators import Email, InputRequired

from ..data_access import users_dao
from ..models.entities import Role

bp = Blueprint("auth", __name__, url_prefix="/auth")


class LoginForm(FlaskForm):
    """Basic credential form."""

    email = StringField("Email", validators=[InputRequired(), Email()])
    password = PasswordField("Password", validators=[InputRequired()])


def form_errors(form: FlaskForm):
    """Render WTForms validation errors as a 400 JSON response."""

    messages = [f"{field}: {error}" for field, errors in form.errors.items() for error in errors]
    return jsonify({"error": "; ".join(messages) or "Invalid request.", "fields": form.errors}), 400


def role_required(*roles: Role) -> Callable:
    """Decorator enforcing role-based access control; admins always pass."""

    allowed_roles = tuple(Role(role) for role in roles)

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if allowed_roles and current_user.role not in allowed_roles and not current_user.is_admin:
                abort(403)
            return view(*args, **kwargs)

        return wrapped

    return decorator


@bp.route("/login", methods=["POST"])
def login():
    """Authenticate an existing user."""

    form = LoginForm()
    if not form.validate_on_submit():
        return form_errors(form)

    user = users_dao.get_user_by_email(form.email.data)
    if not user or not users_dao.verify_password(user.password_hash, form.password.data):
        return jsonify({"error": "Invalid credentials. Please try again."}), 401
    if not user.is_active:
        return jsonify({"error": "This account has been deactivated. Contact support."}), 403
    login_user(user)
    return jsonify({"user": user.to_dict()})


@bp.route("/csrf")
def csrf_token():
    """Hand out a CSRF token; clients echo it back in the ``X-CSRFToken`` header."""

    return jsonify({"csrf_token": generate_csrf()})


@bp.route("/logout")
@login_required
def logout():
    """Log out the current user."""

    logout_user()
    return jsonify({"message": "You have been signed out."})


@bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
