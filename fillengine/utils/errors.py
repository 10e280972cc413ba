"""Custom exceptions for the fill engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fillengine.fields.models import FillReport


class FillEngineError(Exception):
    """Base class for every failure surfaced by the engine."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        detail: dict[str, Any] | None = None,
        report: FillReport | None = None,
    ) -> None:
        super().__init__(message)
        self.detail = detail or {}
        self.report = report


class UnsupportedFormat(FillEngineError):
    """Raised when template bytes are neither a fixed-layout nor a flow-layout document."""


class NoFillableTarget(FillEngineError):
    """Raised when no strategy could place any value into the template."""

    def __init__(
        self,
        message: str = "template has no fillable target; configure fields manually",
        *,
        detail: dict[str, Any] | None = None,
        report: FillReport | None = None,
    ) -> None:
        super().__init__(message, detail=detail, report=report)


class AnalysisFailed(FillEngineError):
    """Raised when the analysis service fails or returns an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        detail: dict[str, Any] | None = None,
        report: FillReport | None = None,
    ) -> None:
        super().__init__(message, detail=detail, report=report)
        self.retryable = retryable


class InvalidFieldReference(FillEngineError):
    """Raised when a configured field points at a page that does not exist."""

    def __init__(self, message: str, *, field_name: str, page: int, page_count: int) -> None:
        super().__init__(
            message,
            detail={"field_name": field_name, "page": page, "page_count": page_count},
        )
        self.field_name = field_name
        self.page = page
        self.page_count = page_count


class RateLimited(FillEngineError):
    """Raised when the caller's quota refuses an external call."""

    retryable = True

    def __init__(self, message: str = "rate limited", *, retry_after: float | None = None) -> None:
        detail: dict[str, Any] = {}
        if retry_after is not None:
            detail["retry_after"] = retry_after
        super().__init__(message, detail=detail)
        self.retry_after = retry_after


class ConversionFailed(FillEngineError):
    """Raised when the external converter crashes or produces no output."""


class ConversionTimeout(ConversionFailed):
    """Raised when the external converter exceeds its hard timeout."""

    def __init__(self, *, timeout_seconds: float, terminated: bool) -> None:
        super().__init__(
            "conversion timed out",
            detail={"timeout_seconds": timeout_seconds, "terminated": terminated},
        )
        self.timeout_seconds = timeout_seconds
        self.terminated = terminated


class StorageUnavailable(FillEngineError):
    """Raised when template bytes cannot be fetched from blob storage."""

    retryable = True
