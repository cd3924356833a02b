"""
Outcome - Explicit result types for collaborator calls.

Every call to an optional dependency (LLM, embedding provider, catalog,
reranker) returns one of:

- Ok(value): the dependency answered.
- Degraded(value, reason): the dependency failed or is absent; ``value`` is
  the next-best fallback and ``reason`` says why.
- Fail(error): nothing usable came back; the caller decides whether to raise.

The orchestrator branches on these values instead of catching incidental
exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")

__all__ = ["Ok", "Degraded", "Fail", "Outcome", "unwrap"]


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded(Generic[T]):
    """Fallback result produced after a dependency failure."""

    value: T
    reason: str

    @property
    def degraded(self) -> bool:
        return True


@dataclass(frozen=True)
class Fail:
    """No usable result."""

    error: Exception

    @property
    def degraded(self) -> bool:
        return True


Outcome = Union[Ok[T], Degraded[T], Fail]


def unwrap(outcome: Outcome[T]) -> T:
    """Return the carried value, raising the error of a Fail."""
    if isinstance(outcome, Fail):
        raise outcome.error
    return outcome.value
