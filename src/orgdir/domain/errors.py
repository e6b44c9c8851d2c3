"""Typed failures raised by the directory engines.

Every error carries a stable ``code`` so the façade can translate it into
a :class:`~orgdir.services.result.ServiceError` without string matching.
"""

from __future__ import annotations

from typing import Any


class DirectoryError(Exception):
    """Base class for all directory failures."""

    code = "DIRECTORY_ERROR"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class NotFoundError(DirectoryError):
    """An id did not resolve to a node of the expected kind."""

    code = "NOT_FOUND"


class ValidationError(DirectoryError):
    """Input rejected before touching the store (e.g. an empty area name)."""

    code = "VALIDATION_ERROR"


class InvalidOperationError(DirectoryError):
    """Structurally disallowed action, such as detaching the root area."""

    code = "INVALID_OPERATION"


class StoreFailure(DirectoryError):
    """The underlying graph store failed; the original error is chained."""

    code = "STORE_FAILURE"


class PartialFailure(DirectoryError):
    """A later phase of a multi-phase mutation failed after an earlier one committed."""

    code = "PARTIAL_FAILURE"


class ImportFailure(DirectoryError):
    """The bulk-import collaborator could not produce a batch."""

    code = "IMPORT_FAILED"
