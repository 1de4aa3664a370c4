"""Resource availability over a time interval."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from flask import current_app

from ..data_access import requests_dao, resources_dao


def available_quantity(
    resource_id: int,
    start: Union[str, datetime],
    end: Union[str, datetime],
    exclude_request_id: Optional[int] = None,
) -> int:
    """Units of the resource not held by APPROVED requests overlapping [start, end).

    Unknown resources have nothing available. A negative remainder can only
    come from inconsistent data; it is reported and clamped to zero.
    """

    resource = resources_dao.get_resource_by_id(resource_id)
    if resource is None:
        return 0

    overlapping = requests_dao.find_overlapping_approved(
        resource_id, start, end, exclude_request_id=exclude_request_id
    )
    used = sum(request.quantity for request in overlapping)
    remaining = resource.quantity - used
    if remaining < 0:
        current_app.logger.warning(
            "Resource %s is oversubscribed: %s approved against a stock of %s",
            resource_id,
            used,
            resource.quantity,
        )
        return 0
    return remaining
