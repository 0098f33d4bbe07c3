from __future__ import annotations

from typing import Any, Dict, List


class HemolinkError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class ValidationError(HemolinkError):
    """Malformed input: unknown enum value, bad coordinate shape, missing field."""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, errors: List[Dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "errors": self.errors}


class NotFoundError(HemolinkError):
    code = "not_found"
    status_code = 404


class ForbiddenError(HemolinkError):
    code = "forbidden"
    status_code = 403


class InvalidStateError(HemolinkError):
    code = "invalid_state"
    status_code = 409


class InvalidInputError(HemolinkError):
    """Missing geo parameters for a search."""

    code = "invalid_input"
    status_code = 400


class StorageError(HemolinkError):
    code = "storage_error"
    status_code = 503
