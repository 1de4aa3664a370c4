"""Dataclass-style entity representations."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from flask_login import UserMixin


class Role(str, Enum):
    """Closed set of portal roles."""

    ADMIN = "ADMIN"
    LHC = "LHC"
    CLUB_MANAGER = "CLUB_MANAGER"
    LAB_TECH = "LAB_TECH"
    PROFESSOR = "PROFESSOR"
    STUDENT = "STUDENT"


class RequestStatus(str, Enum):
    """Lifecycle states shared by resource requests and room bookings."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    WAITLISTED = "WAITLISTED"
    OVERRIDDEN = "OVERRIDDEN"


class OwnerType(str, Enum):
    DEPARTMENT = "DEPARTMENT"
    CLUB = "CLUB"


class Action(str, Enum):
    """Actions accepted by the approval state machine."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    OVERRIDE = "OVERRIDE"
    REOPEN = "REOPEN"


class EntityType(str, Enum):
    RESOURCE_REQUEST = "RESOURCE_REQUEST"
    ROOM_BOOKING = "ROOM_BOOKING"


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return {key: _serialize(value) for key, value in asdict(self).items()}  # type: ignore[call-overload]


@dataclass
class User(UserMixin, _Serializable):
    """User entity compatible with Flask-Login."""

    user_id: int
    name: str
    email: str
    password_hash: str
    role: Role
    department_id: Optional[int]
    club_id: Optional[int]
    roll_number: Optional[str]
    created_at: datetime
    is_active: bool = True

    def get_id(self) -> str:
        return str(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.pop("password_hash", None)
        return data


@dataclass
class Department(_Serializable):
    department_id: int
    name: str


@dataclass
class Club(_Serializable):
    club_id: int
    name: str


@dataclass
class Resource(_Serializable):
    """Shared equipment owned by exactly one department or club."""

    resource_id: int
    name: str
    description: Optional[str]
    quantity: int
    owner_type: OwnerType
    department_id: Optional[int]
    club_id: Optional[int]
    created_at: datetime


@dataclass
class Room(_Serializable):
    room_id: int
    name: str
    capacity: int
    location: Optional[str]


@dataclass
class ResourceRequest(_Serializable):
    """A reservation of some quantity of a resource over an interval."""

    request_id: int
    resource_id: int
    requester_id: int
    quantity: int
    start_time: datetime
    end_time: datetime
    status: RequestStatus
    roll_number: Optional[str]
    reason: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass
class RoomBooking(_Serializable):
    """Exclusive use of a room over an interval."""

    booking_id: int
    room_id: int
    requester_id: int
    start_time: datetime
    end_time: datetime
    purpose: Optional[str]
    status: RequestStatus
    queue_position: Optional[int]
    created_at: datetime
    updated_at: datetime


@dataclass
class LogEntry(_Serializable):
    """Append-only audit record."""

    log_id: int
    user_id: Optional[int]
    role: Optional[str]
    action: str
    entity_type: str
    entity_id: int
    old_state: Optional[str]
    new_state: Optional[str]
    created_at: datetime
