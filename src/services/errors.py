"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class PortalError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Malformed input or a request the current state cannot satisfy."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """The action is not legal from the entity's current status."""


class AuthorizationError(PortalError):
    status_code = 403


class NotFoundError(PortalError):
    status_code = 404


class ConcurrencyConflict(PortalError):
    """A store-level exclusivity or quantity constraint rejected a write."""

    status_code = 409
