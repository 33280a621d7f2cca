"""Explicit success/failure value returned by price source adapters."""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class FetchError:
    source: str
    message: str


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    value: T | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, source: str, error: BaseException | str) -> "FetchResult[T]":
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        return cls(error=FetchError(source=source, message=message))
