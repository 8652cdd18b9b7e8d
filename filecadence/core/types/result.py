# filecadence/core/types/result.py
"""
Minimal Ok/Err result type.

Used where an operation has two expected outcomes that the caller must
branch on (per-record poll outcomes, JSON codec). Exceptions remain the
mechanism for unexpected failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeGuard, TypeVar

T = TypeVar('T')
E = TypeVar('E')


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    ok_value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class Err(Generic[E]):
    err_value: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True


Result: TypeAlias = Ok[T] | Err[E]


def is_ok(result: Result[T, E]) -> TypeGuard[Ok[T]]:
    return isinstance(result, Ok)


def is_err(result: Result[T, E]) -> TypeGuard[Err[E]]:
    return isinstance(result, Err)
