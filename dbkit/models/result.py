"""Two-variant result values used by the result-driven transaction variants.

``Either`` is ``Left`` (failure) or ``Right`` (success); ``Validation`` is
``Failure`` or ``Success``.  A transaction commits on the success branch and
rolls back on the failure branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

A = TypeVar("A")
B = TypeVar("B")
C = TypeVar("C")


@dataclass(frozen=True)
class Left(Generic[A]):
    value: A

    @property
    def is_right(self) -> bool:
        return False

    def fold(self, on_left: Callable[[A], C], on_right: Callable[[Any], C]) -> C:
        return on_left(self.value)


@dataclass(frozen=True)
class Right(Generic[B]):
    value: B

    @property
    def is_right(self) -> bool:
        return True

    def fold(self, on_left: Callable[[Any], C], on_right: Callable[[B], C]) -> C:
        return on_right(self.value)


Either = Union[Left[A], Right[B]]


@dataclass(frozen=True)
class Failure(Generic[A]):
    error: A

    @property
    def is_success(self) -> bool:
        return False

    def to_either(self) -> Left[A]:
        return Left(self.error)


@dataclass(frozen=True)
class Success(Generic[B]):
    value: B

    @property
    def is_success(self) -> bool:
        return True

    def to_either(self) -> Right[B]:
        return Right(self.value)


Validation = Union[Failure[A], Success[B]]


def validation_from_either(either: "Either[A, B]") -> "Validation[A, B]":
    """Inverse of ``to_either``."""
    return either.fold(Failure, Success)
