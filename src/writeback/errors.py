"""Typed, status-coded failures raised by the action engine."""

from __future__ import annotations

from typing import Any


class ActionError(Exception):
    """Base error for action dispatch.

    Every failure carries a ``kind`` and an HTTP-style ``status_code`` so the
    request layer can translate it into a response without inspecting it.
    """

    kind = "handler-error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return the failure as a JSON-safe result payload."""
        result: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            result["details"] = self.details
        return result


class FeatureDisabled(ActionError):
    """Actions are disabled globally or for the target database."""

    kind = "disabled"
    status_code = 400


class UnsupportedConnector(ActionError):
    """The target database's connector does not support the action."""

    kind = "unsupported"
    status_code = 400


class UnknownAction(ActionError):
    """No handler exists for the action under any connector kind."""

    kind = "not-found"
    status_code = 404


class ValidationFailure(ActionError):
    """The normalized arg map violates its validation contract."""

    kind = "validation"
    status_code = 400


class NotFound(ActionError):
    """The referenced database does not exist."""

    kind = "not-found"
    status_code = 404


class Unauthorized(ActionError):
    """The current caller lacks the privilege to perform actions."""

    kind = "unauthorized"
    status_code = 403


class HandlerFailure(ActionError):
    """Raised by handlers to report a connector-specific failure."""

    kind = "handler-error"
