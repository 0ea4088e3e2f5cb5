"""Hit store interface consumed by the sync orchestrator.

The application owns hit persistence; this module only describes what the
orchestrator needs from it and ships a small in-memory implementation.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from typing import Any, Protocol

from pyhighscore.models.hit import Hit


class HitStore(Protocol):
    """What the sync orchestrator needs from the application's hit store."""

    def known_ids(self) -> Collection[str]:
        """Ids of every hit the store currently holds."""
        ...

    def prepend(self, hits: Sequence[Hit]) -> None:
        """Insert *hits* ahead of the existing ones (newest first)."""
        ...

    def rebuild_aggregates(self) -> None:
        """Recompute derived per-day history from the full hit collection."""
        ...


class InMemoryHitStore:
    """List-backed :class:`HitStore`.

    ``rebuild`` maps the full hit list to whatever derived history the host
    application keeps; its latest result is exposed as :attr:`history`.
    """

    def __init__(
        self,
        hits: Sequence[Hit] = (),
        *,
        rebuild: Callable[[Sequence[Hit]], Any] | None = None,
    ) -> None:
        self._hits: list[Hit] = list(hits)
        self._rebuild = rebuild
        self.history: Any = None
        self.rebuild_count = 0

    @property
    def hits(self) -> list[Hit]:
        return list(self._hits)

    def known_ids(self) -> set[str]:
        return {hit.id for hit in self._hits}

    def add(self, hit: Hit) -> None:
        self._hits.insert(0, hit)

    def prepend(self, hits: Sequence[Hit]) -> None:
        self._hits[:0] = list(hits)

    def rebuild_aggregates(self) -> None:
        self.rebuild_count += 1
        if self._rebuild is not None:
            self.history = self._rebuild(list(self._hits))

    def __len__(self) -> int:
        return len(self._hits)
