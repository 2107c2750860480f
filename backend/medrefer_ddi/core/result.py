"""Tagged success/failure wrapper returned by the engine boundary."""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from medrefer_ddi.core.exceptions import DrugInteractionEngineError, ErrorKind

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an engine operation.

    A successful result carries ``data``; a failed one carries an
    ``error_kind`` and a human readable ``error_message``. Callers must
    branch on ``is_success`` so that "nothing found" is never confused
    with "could not check".
    """

    data: T | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @classmethod
    def success(cls, data: T) -> "Result[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error_kind=kind, error_message=message)

    @classmethod
    def from_error(cls, error: DrugInteractionEngineError) -> "Result[T]":
        return cls(error_kind=error.kind, error_message=error.message)

    @property
    def is_success(self) -> bool:
        return self.error_kind is None

    @property
    def is_error(self) -> bool:
        return self.error_kind is not None

    def unwrap(self) -> T:
        """Return the data, raising if this is a failure."""
        if self.error_kind is not None:
            raise RuntimeError(f"Unwrapped error result ({self.error_kind.value}): {self.error_message}")
        return self.data  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        return self.data if self.is_success else default  # type: ignore[return-value]

    def map(self, transform: Callable[[T], R]) -> "Result[R]":
        if self.is_error:
            return Result(error_kind=self.error_kind, error_message=self.error_message)
        return Result(data=transform(self.data))  # type: ignore[arg-type]
