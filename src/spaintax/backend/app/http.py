"""JSON error bodies shared by the blueprints and the application error handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import jsonify

_PAYLOAD_PREFIX = "Invalid calculation payload: "


@dataclass(frozen=True)
class ProblemResponse:
    """Error payload in the spirit of RFC 7807, kept flat for API clients."""

    error: str
    status: int
    message: str | None = None
    details: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error, "status": self.status}
        if self.message:
            payload["message"] = self.message
        if self.details:
            payload["details"] = list(self.details)
        return payload

    def to_response(self) -> tuple[Any, int]:
        """Convert the problem payload into a Flask response tuple."""

        return jsonify(self.as_dict()), self.status


def validation_details(message: str) -> tuple[str, ...]:
    """Split a payload validation message into its individual issues.

    Messages produced for invalid calculation payloads join the offending
    fields with ``"; "``; any other message yields no details.
    """

    if not message.startswith(_PAYLOAD_PREFIX):
        return ()
    issues = message[len(_PAYLOAD_PREFIX):].split("; ")
    return tuple(issue.strip() for issue in issues if issue.strip())


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    details: tuple[str, ...] = (),
) -> ProblemResponse:
    return ProblemResponse(error=error, status=status, message=message, details=details)


__all__ = ["ProblemResponse", "problem_response", "validation_details"]
