"""Role-based access predicates.

Every predicate is pure: it looks only at the caller's role and affiliation
(``role``, ``department_id``, ``club_id``) and, where relevant, the target
entity. Roles are matched exhaustively so adding a ``Role`` member forces a
review of each rule here.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ..models.entities import OwnerType, Resource, Role


class Caller(Protocol):
    role: Role
    department_id: Optional[int]
    club_id: Optional[int]


def is_admin(user: Caller) -> bool:
    return user.role is Role.ADMIN


def can_approve_resource(user: Caller, resource: Resource) -> bool:
    """Admins always; otherwise the manager of the owning club or a lab tech of the owning department."""

    if user.role is Role.ADMIN:
        return True
    if resource.owner_type is OwnerType.CLUB:
        return (
            user.role is Role.CLUB_MANAGER
            and user.club_id is not None
            and user.club_id == resource.club_id
        )
    if resource.owner_type is OwnerType.DEPARTMENT:
        return (
            user.role is Role.LAB_TECH
            and user.department_id is not None
            and user.department_id == resource.department_id
        )
    return False


def can_approve_room(user: Caller) -> bool:
    return user.role in (Role.LHC, Role.ADMIN)


def can_request_resource(user: Caller) -> bool:
    if user.role in (Role.STUDENT, Role.PROFESSOR, Role.CLUB_MANAGER, Role.ADMIN):
        return True
    if user.role in (Role.LAB_TECH, Role.LHC):
        return False
    raise ValueError(f"Unhandled role {user.role!r}")


def can_book_room(user: Caller) -> bool:
    """Professors and club managers book rooms; students cannot."""

    if user.role in (Role.PROFESSOR, Role.CLUB_MANAGER, Role.ADMIN):
        return True
    if user.role in (Role.STUDENT, Role.LAB_TECH, Role.LHC):
        return False
    raise ValueError(f"Unhandled role {user.role!r}")


def can_view_club_resources(user: Caller) -> bool:
    if user.role in (Role.PROFESSOR, Role.LAB_TECH):
        return False
    if user.role in (Role.ADMIN, Role.LHC, Role.CLUB_MANAGER, Role.STUDENT):
        return True
    raise ValueError(f"Unhandled role {user.role!r}")


def can_manage_club_resources(user: Caller, club_id: Optional[int]) -> bool:
    if user.role is Role.ADMIN:
        return True
    return user.role is Role.CLUB_MANAGER and club_id is not None and user.club_id == club_id


def can_manage_department_resources(user: Caller) -> bool:
    return is_admin(user)


def can_cancel(user: Caller, requester_id: int) -> bool:
    """Only the original requester or an admin may cancel."""

    return is_admin(user) or getattr(user, "user_id", None) == requester_id
