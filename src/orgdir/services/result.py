"""What a :meth:`Directory.call` hands back to the CLI (and any other caller).

A failed call carries the :class:`~orgdir.domain.errors.DirectoryError`
code (``NOT_FOUND``, ``PARTIAL_FAILURE``, ...) and its detail, never a
traceback.  A successful one carries the plain-data value under
``data["result"]`` plus any ``post_change`` plugin warnings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from orgdir.domain.errors import DirectoryError


class ServiceError(BaseModel):
    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Outcome of one directory operation.

    Attributes:
        ok: False when the operation raised a DirectoryError.
        op: Operation name, e.g. ``"children"`` or ``"merge"``.
        data: ``{"result": ...}`` on success, empty on failure.
        warnings: Messages from ``post_change`` hooks that failed.
        error: The error code, message and detail when ``ok`` is False.
        meta: ``duration_ms`` of the call, when it got as far as running.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        exc: DirectoryError,
        *,
        detail: dict[str, Any] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """Failed result for *exc*; *detail* replaces ``exc.detail`` when given."""
        error = ServiceError(code=exc.code, message=exc.message, detail=exc.detail if detail is None else detail)
        return cls(ok=False, op=op, error=error, meta=meta)

    @property
    def result(self) -> Any:
        return self.data.get("result")
