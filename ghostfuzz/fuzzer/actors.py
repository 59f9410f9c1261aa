"""Actor registry — the set of identities discovered during a run.

Actors are appended the first time they show up as a caller or as an
explicit counterparty and are never removed, so iteration order is the
discovery order and ``pick(seed)`` is reproducible for a given history.
"""

from __future__ import annotations

from typing import Callable, Iterator, TypeVar

from ghostfuzz.core.errors import EmptyRegistry

T = TypeVar("T")


class ActorRegistry:
    """Deduplicated, insertion-ordered collection of actor identities."""

    def __init__(self) -> None:
        self._actors: list[str] = []
        self._saved: set[str] = set()

    def add(self, actor: str) -> None:
        if actor in self._saved:
            return
        self._actors.append(actor)
        self._saved.add(actor)

    def contains(self, actor: str) -> bool:
        return actor in self._saved

    def count(self) -> int:
        return len(self._actors)

    def pick(self, seed: int) -> str:
        """Deterministically select the actor at ``seed mod count()``."""
        if not self._actors:
            raise EmptyRegistry()
        return self._actors[seed % len(self._actors)]

    def for_each(self, visitor: Callable[[str], None]) -> None:
        for actor in self._actors:
            visitor(actor)

    def reduce(self, initial: T, combiner: Callable[[T, str], T]) -> T:
        acc = initial
        for actor in self._actors:
            acc = combiner(acc, actor)
        return acc

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._actors)

    def __contains__(self, actor: object) -> bool:
        return actor in self._saved

    def __len__(self) -> int:
        return len(self._actors)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._actors))

    def __repr__(self) -> str:
        return f"ActorRegistry({len(self._actors)} actors)"
