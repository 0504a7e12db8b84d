"""Per-call identity bookkeeping: the things that make cyclic graphs
comparable without ever looking at an object's content."""
from __future__ import annotations

from typing import NamedTuple

__all__ = ['IdentityRegistry', 'DedupKey', 'DedupSet']


class IdentityRegistry:
    """Maps object references to small ints, in order of first sight.

    This is keyed by ``id()``, not by hash/``==`` (that is what we are
    trying to test, so it can't be used here). We keep a strong reference
    to every object we have seen because otherwise a temporary (e.g. the
    ``(key, value)`` tuples made when iterating a dict) could be freed
    and its ``id()`` handed out to a different object later in the call.
    """
    def __init__(self):
        self._ids: dict[int, int] = {}  # id(o) -> identity
        self._keep_alive: list[object] = []

    def get_or_create(self, o: object) -> int:
        if (ident := self._ids.get(id(o))) is not None:
            return ident
        ident = self._ids[id(o)] = len(self._keep_alive)
        self._keep_alive.append(o)
        return ident

    def __contains__(self, o: object):
        return id(o) in self._ids

    def __len__(self):
        return len(self._keep_alive)


class DedupKey(NamedTuple):
    expected_id: int
    actual_id: int
    member_name: str


class DedupSet:
    def __init__(self):
        self._seen: set[DedupKey] = set()

    def add_if_new(self, key: DedupKey) -> bool:
        """Returns False if it was already there (so don't visit it again)"""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def __contains__(self, key: DedupKey):
        return key in self._seen

    def __len__(self):
        return len(self._seen)
