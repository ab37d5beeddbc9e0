"""
Domain error taxonomy.

Every error carries a stable `kind` so the API layer can render a consistent
payload without inspecting messages.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence


class EnquiryError(Exception):
    """Base class for errors surfaced to callers."""

    kind: str = "enquiry_error"

    def __init__(self, message: str, details: Optional[Sequence[Any]] = None):
        self.message = message
        self.details: List[Any] = list(details or [])
        super().__init__(message)


class ValidationError(EnquiryError):
    """Rejected input. `details` lists every violation, not just the first."""

    kind = "validation_error"

    def __init__(self, errors: Sequence[str]):
        errors = list(errors)
        super().__init__(", ".join(errors) if errors else "Invalid input", errors)

    @property
    def errors(self) -> List[str]:
        return self.details


class NotFoundError(EnquiryError):
    kind = "not_found"

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found with id of {identifier}")


class AuthorizationError(EnquiryError):
    """
    Role insufficient for the requested operation.

    The message is fixed so nothing about the target resource leaks.
    """

    kind = "not_authorized"

    def __init__(self) -> None:
        super().__init__("Not authorized to access this route")


class AuthenticationError(EnquiryError):
    """No usable caller identity on the request."""

    kind = "not_authenticated"

    def __init__(self) -> None:
        super().__init__("Not authorized to access this route")


class ImportAbortedError(ValidationError):
    """Bulk import rejected; `details` holds `{"row": n, "errors": [...]}` items."""

    kind = "import_aborted"

    def __init__(self, row_errors: Sequence[dict]):
        EnquiryError.__init__(
            self,
            f"Validation errors in uploaded file ({len(row_errors)} row(s) rejected)",
            row_errors,
        )


class UnknownFieldError(EnquiryError):
    """A rule condition referenced a field the enquiry does not expose."""

    kind = "unknown_field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Unknown enquiry field in condition: {field!r}")


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "EnquiryError",
    "ImportAbortedError",
    "NotFoundError",
    "UnknownFieldError",
    "ValidationError",
]
