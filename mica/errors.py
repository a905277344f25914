"""Exception taxonomy for loading, validating and calculating inflation data."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mica.models import ValidationResult


class DataError(Exception):
    """Base class for every failure the recovery engine knows how to handle."""

    retryable = True


class DataLoadError(DataError):
    def __init__(
        self,
        message: str,
        currency: str = "",
        source: str = "",
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.currency = currency
        self.source = source
        if retryable is not None:
            self.retryable = retryable


class NotFound(DataLoadError):
    """Blob missing or unreachable.

    Stores pass ``retryable=False`` when the blob is known to be absent
    (HTTP 4xx, missing file) and leave it retryable for transport errors
    and 5xx responses.
    """


class MalformedData(DataLoadError):
    """Blob fetched but not JSON, or not the expected shape."""

    retryable = False


class UnknownCurrency(DataError):
    retryable = False

    def __init__(self, currency: str) -> None:
        super().__init__(f"No measure weights defined for currency: {currency}")
        self.currency = currency


class NoWeightsForCurrency(UnknownCurrency):
    pass


class NoValidMeasures(DataError):
    def __init__(self, currency: str, errors: list[tuple[str, Exception]] | None = None) -> None:
        super().__init__(f"No valid measures found for {currency}")
        self.currency = currency
        self.errors = errors or []

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return any(getattr(e, "retryable", True) for _, e in self.errors)


class DataValidationError(DataError):
    retryable = False

    def __init__(
        self,
        message: str,
        currency: str,
        measure: str,
        validation: ValidationResult,
    ) -> None:
        super().__init__(message)
        self.currency = currency
        self.measure = measure
        self.validation = validation


class CalculationError(DataError):
    retryable = False
