"""Error taxonomy for the classification pipeline."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HuzzologyError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(HuzzologyError):
    """Missing or invalid configuration, raised before any provider call."""


class ProviderError(HuzzologyError):
    """An embedding or text-generation provider call failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DataError(HuzzologyError):
    """Malformed vectors: zero length, dimension mismatch, count mismatch."""


@dataclass(frozen=True)
class ProviderResult(Generic[T]):
    """Outcome of a provider call: exactly one of ``value`` or ``error`` is set."""

    value: T | None = None
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, fallback: T) -> T:
        if self.error is not None or self.value is None:
            return fallback
        return self.value


async def capture_provider_call(call: Awaitable[T]) -> ProviderResult[T]:
    """Await ``call`` and fold provider or parse failures into a ProviderResult.

    Configuration errors still propagate: they are fatal, not degradable.
    """
    try:
        return ProviderResult(value=await call)
    except ConfigurationError:
        raise
    except ProviderError as exc:
        return ProviderResult(error=exc)
    except (ValueError, TypeError, KeyError) as exc:
        return ProviderResult(error=ProviderError(f"Unparseable provider output: {exc}"))
