"""Application error taxonomy.

Each error carries the HTTP status it maps to; ``main.py`` registers a single
handler that renders them as ``{"detail": ...}`` JSON bodies. Forbidden
errors also carry a reason tag so clients can tell a missing role apart from
a missing permission, a foreign record, or a restricted field.
"""

from enum import Enum
from typing import Optional

from fastapi import status


class DenialReason(str, Enum):
    """Why an authenticated caller was refused."""

    ROLE_INSUFFICIENT = "role_insufficient"
    PERMISSION_INSUFFICIENT = "permission_insufficient"
    OWNERSHIP_INSUFFICIENT = "ownership_insufficient"
    FIELD_NOT_ALLOWED = "field_not_allowed"
    SELF_DEMOTION = "self_demotion"
    SELF_DELETION = "self_deletion"


class PMError(Exception):
    """Base class for errors rendered directly to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail}


class NotAuthenticated(PMError):
    """No identity, or an identity that cannot be verified."""

    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(PMError):
    """Authenticated, but lacking the role, permission or ownership required."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str, reason: DenialReason = DenialReason.PERMISSION_INSUFFICIENT):
        super().__init__(detail)
        self.reason = reason

    def to_dict(self) -> dict:
        return {"detail": self.detail, "reason": self.reason.value}


class NotFound(PMError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailed(PMError):
    """Malformed or disallowed input (bad reference, self-demotion, ...)."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, errors: Optional[list[str]] = None):
        super().__init__(detail)
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"detail": self.detail}
        if self.errors:
            body["errors"] = self.errors
        return body


class Conflict(PMError):
    """A unique field (email, project membership) already exists."""

    status_code = status.HTTP_409_CONFLICT
