"""Exception taxonomy for document generation. Every error names the variant when known."""
from __future__ import annotations

from typing import Any, Iterable


class DocumentGenerationError(Exception):
    """Base exception for all document generation errors."""

    def __init__(self, message: str, *, variant: Any = None, details: dict[str, Any] | None = None):
        self.variant = variant
        self.details = dict(details or {})
        if variant is not None:
            message = f"[{_variant_name(variant)}] {message}"
        super().__init__(message)


def _variant_name(variant: Any) -> str:
    return getattr(variant, "value", None) or str(variant)


class MissingVehicleFields(DocumentGenerationError):
    """Required vehicle data (VIN, year, make, model) absent after normalization."""

    def __init__(self, missing: Iterable[str], *, variant: Any = None):
        self.missing = list(missing)
        super().__init__(
            f"Missing required vehicle fields: {', '.join(self.missing)}",
            variant=variant,
            details={"missing": self.missing},
        )


class TemplateResolutionError(DocumentGenerationError):
    """Deal taxonomy does not resolve to exactly one template variant."""


class UnsupportedDealType(TemplateResolutionError):
    def __init__(self, deal_type: str | None):
        self.deal_type = deal_type
        super().__init__(
            f"Unsupported deal type: {deal_type!r}",
            details={"dealType": deal_type},
        )


class MissingSubType(TemplateResolutionError):
    def __init__(self, deal_type: str, sub_type: str | None):
        self.deal_type = deal_type
        self.sub_type = sub_type
        super().__init__(
            f"Deal type {deal_type!r} requires dealType2SubType 'buy' or 'sale', got {sub_type!r}",
            details={"dealType": deal_type, "dealType2SubType": sub_type},
        )


class InconsistentDealData(DocumentGenerationError):
    """Deal fields contradict each other; surfaced instead of silently corrected."""

    def __init__(self, reason: str, *, fields: Iterable[str] = (), variant: Any = None):
        self.reason = reason
        self.fields = list(fields)
        super().__init__(
            f"{reason} (fields: {', '.join(self.fields)})" if self.fields else reason,
            variant=variant,
            details={"fields": self.fields},
        )


class RenderFailure(DocumentGenerationError):
    """A render backend raised while drawing or printing."""

    def __init__(self, backend: str, variant: Any, cause: BaseException | str):
        self.backend = backend
        self.cause = cause
        super().__init__(
            f"{backend} backend failed to render: {cause}",
            variant=variant,
            details={"backend": backend},
        )


class BrowserUnresponsive(DocumentGenerationError):
    """A pooled browser failed its health check. Handled inside the pool."""


class StorageFailure(DocumentGenerationError):
    """Object storage call failed after the retry budget was exhausted."""

    def __init__(
        self,
        operation: str,
        key: str | None,
        cause: BaseException | str,
        *,
        attempts: int = 1,
        variant: Any = None,
    ):
        self.operation = operation
        self.key = key
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Storage {operation} failed for {key!r} after {attempts} attempt(s): {cause}",
            variant=variant,
            details={"operation": operation, "key": key, "attempts": attempts},
        )
