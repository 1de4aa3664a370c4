"""Administrative audit routes."""

from __future__ import annotations

import math

from flask import Blueprint, current_app, jsonify, request

from ..data_access import logs_dao
from ..models.entities import Role
from .auth import role_required

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.route("/logs")
@role_required(Role.ADMIN)
def logs():
    """Page through the audit log, optionally filtered by action or entity type."""

    page = max(request.args.get("page", 1, type=int) or 1, 1)
    limit = request.args.get("limit", current_app.config["LOGS_PAGE_SIZE"], type=int)
    limit = min(max(limit or 1, 1), 200)
    entries, total = logs_dao.list_logs(
        action=request.args.get("action") or None,
        entity_type=request.args.get("entity_type") or None,
        page=page,
        limit=limit,
    )
    return jsonify(
        {
            "logs": [entry.to_dict() for entry in entries],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }
    )
