"""Per-item outcome container for parsers that aggregate failures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, Tuple, TypeVar


T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Result(Generic[T, E]):
    """Either a success value or an error, never both."""

    value: Optional[T] = None
    error: Optional[E] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def err(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        if self.error is not None:
            raise RuntimeError(f"Tried to unwrap error result: {self.error}")
        return self.value  # type: ignore[return-value]


def partition(results: Iterable[Result[T, E]]) -> Tuple[List[T], List[E]]:
    """Split ``results`` into successful values and errors, keeping order."""

    values: List[T] = []
    errors: List[E] = []
    for result in results:
        if result.is_err():
            errors.append(result.error)  # type: ignore[arg-type]
        else:
            values.append(result.unwrap())
    return values, errors


__all__ = ["Result", "partition"]
