"""Tagged success/failure results for fallback ladders.

Sources describe alternative read or estimation strategies as an ordered list
of callables returning ``Result``. ``first_success`` walks the list and takes
the first successful value instead of chaining try/except blocks.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one strategy: a value, or the reason it failed."""

    value: T | None = None
    error: str | None = None
    strategy: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, strategy: str = "") -> "Result[T]":
        return cls(value=value, strategy=strategy)

    @classmethod
    def failure(cls, error: str, strategy: str = "") -> "Result[T]":
        return cls(error=error, strategy=strategy)


Strategy = Callable[[], Result[T]]


def first_success(strategies: Iterable[Strategy[T]]) -> tuple[Result[T], list[Result[T]]]:
    """Run strategies in order and return the first success.

    A strategy that raises is recorded as a failure and the ladder continues.

    Returns:
        Tuple of (winning or last result, list of failures seen before it).
        When no strategy succeeds the first element is a failure.
    """
    failures: list[Result[T]] = []
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            result = strategy()
        except Exception as e:
            result = Result.failure(f"{type(e).__name__}: {e}", strategy=name)
        if result.ok:
            return result, failures
        failures.append(result)
    return Result.failure("all strategies failed"), failures
