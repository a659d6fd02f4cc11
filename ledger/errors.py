# ledger/errors.py
"""
Error taxonomy shared by services and the HTTP layer.

Services raise these; ledger.main maps them to JSON responses:
- ValidationError -> 400 (with field-level details)
- NotFoundError   -> 404
- ConflictError   -> 409 (uniqueness / lifecycle rules)
- UpstreamError   -> 500 (database or LLM/holiday provider failure)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class AppError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls("Validation failed", details=[{"field": field, "message": message}])


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None) -> None:
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} ({identifier}) not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409


class UpstreamError(AppError):
    code = "UPSTREAM_ERROR"
    status_code = 500


__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
]
