#!/usr/bin/env python3

"""
Frequency table used to count link targets per normalized label.

A ``CounterTable`` is a ``collections.Counter`` that only ever holds positive
counts and adds the handful of operations the link lexicon needs:

- ``count``: increment a key by one
- ``merge``: add all counts of another table
- ``retain_entries``: drop entries rejected by a predicate, in one pass
- ``descending``: iterate entries by count, highest first

Equal counts are ordered by key (ascending) so that the emitted lexicon is
identical from one run to the next.
"""

import logging
from collections import Counter
from typing import Callable, Hashable, Iterator, Mapping, Tuple, TypeVar

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

EntryPredicate = Callable[[K, int], bool]


class CounterTable(Counter):
    """Counter of keys with strictly positive integer counts."""

    def count(self, key: K) -> int:
        """Increment ``key`` by one and return its new count."""
        self[key] += 1
        return self[key]

    def merge(self, other: Mapping[K, int]) -> None:
        """Add every count of ``other`` to this table.

        ``other`` is only read, never modified.
        """
        for key, count in other.items():
            self[key] += count

    def retain_entries(self, predicate: EntryPredicate) -> int:
        """Keep only entries for which ``predicate(key, count)`` is true.

        The predicate sees a snapshot of the entries taken before the pass
        starts and is called exactly once per entry.

        :return: Number of removed entries.
        """
        dropped = [key for key, count in list(self.items()) if not predicate(key, count)]
        for key in dropped:
            del self[key]
        return len(dropped)

    def descending(self) -> Iterator[Tuple[K, int]]:
        """Yield ``(key, count)`` pairs by decreasing count, ties by key."""
        yield from sorted(self.items(), key=lambda item: (-item[1], item[0]))

    def sum(self) -> int:
        return sum(self.values())

    def max(self) -> int:
        return max(self.values(), default=0)

    def size(self) -> int:
        return len(self)
