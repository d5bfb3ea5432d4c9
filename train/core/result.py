"""Result type for explicit error handling.

Every fallible step of the release train (git calls, descriptor rewrites,
remote CI requests) returns a Result instead of raising. Callers branch on
the variant, either with isinstance checks or structural pattern matching:

    match repo.merge_base("origin/release-11", "origin/develop"):
        case Ok(sha):
            console.print(f"branch point: {sha}")
        case Err(e):
            console.warning(e.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def unwrap(self) -> None:
        """An Err carries no value.

        Raises:
            ValueError: Always, with the error in the message.
        """
        raise ValueError(f"called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = "Ok[T] | Err[E]"
