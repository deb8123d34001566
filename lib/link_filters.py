#!/usr/bin/env python3

"""
Filters applied to the target counts of one label before it is written.

For every label the pipeline runs, in this order:

1. ``resolve_redirects``: alias targets are folded into their canonical target
2. ``popularity_filter``: total support and top count are measured, then
   targets seen fewer than ``minimal_support`` times are dropped
3. ``article_filter``: targets that are not known articles are dropped

``filter_label`` chains the three steps and returns the support statistics
measured in step 2, or ``None`` when nothing survived. ``prominent_targets``
then selects the targets to print.
"""

import logging
from typing import (
    AbstractSet,
    Callable,
    Hashable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
)

from counter_table import CounterTable

log = logging.getLogger(__name__)

MINIMAL_SUPPORT = 3
PROMINENCE_FACTOR = 10

EntryPredicate = Callable[[Hashable, int], bool]


class SupportStats(NamedTuple):
    """Support of a label measured before thresholds drop any target."""

    total: int
    max: int


def keep_min_support(minimal_support: int) -> EntryPredicate:
    def predicate(key: Hashable, count: int) -> bool:
        return count >= minimal_support

    return predicate


def keep_members(accept: AbstractSet[str]) -> EntryPredicate:
    def predicate(key: Hashable, count: int) -> bool:
        return key in accept

    return predicate


def resolve_redirects(table: CounterTable, redirects: Mapping[str, str]) -> int:
    """Rewrite alias targets of ``table`` to their canonical target.

    The counts of all aliases are added to their canonical target, which is
    created if missing, and the alias entries are removed. Rewrites are
    collected first and applied afterwards, so the result does not depend on
    iteration order. Self-redirects leave the entry untouched.

    :param CounterTable table: Target counts of one label, changed in place.
    :param Mapping[str, str] redirects: Transitive closure alias -> canonical.
    :return: Number of alias entries folded into another target.
    """
    moves: List[Tuple[str, str, int]] = []
    for target, count in table.items():
        canonical = redirects.get(target)
        if canonical is not None and canonical != target:
            moves.append((target, canonical, count))

    for alias, _, _ in moves:
        del table[alias]
    for _, canonical, count in moves:
        table[canonical] += count

    return len(moves)


def popularity_filter(table: CounterTable, minimal_support: int) -> SupportStats:
    """Measure sum and max of ``table``, then drop rarely seen targets."""
    stats = SupportStats(total=table.sum(), max=table.max())
    table.retain_entries(keep_min_support(minimal_support))
    return stats


def article_filter(table: CounterTable, articles: AbstractSet[str]) -> int:
    """Drop targets that are not in ``articles``; return the number dropped."""
    return table.retain_entries(keep_members(articles))


def filter_label(
    table: CounterTable,
    redirects: Mapping[str, str],
    articles: AbstractSet[str],
    minimal_support: int = MINIMAL_SUPPORT,
) -> Optional[SupportStats]:
    """Run the complete filter chain on the targets of one label.

    :return: Support statistics of the label, or ``None`` if no target is left.
    """
    resolve_redirects(table, redirects)
    stats = popularity_filter(table, minimal_support)
    article_filter(table, articles)
    if table.size() == 0:
        return None
    return stats


def prominent_targets(
    table: CounterTable,
    max_count: int,
    prominence_factor: int = PROMINENCE_FACTOR,
) -> List[Tuple[str, int]]:
    """Targets in descending order whose count is at least ``max_count / factor``."""
    return [
        (target, count)
        for target, count in table.descending()
        if count * prominence_factor >= max_count
    ]


def format_label_line(
    label: str, stats: SupportStats, targets: List[Tuple[str, int]]
) -> str:
    """Format one lexicon line: label, total support, then target:count pairs."""
    fields = [label, str(stats.total)]
    fields.extend(f"{target}:{count}" for target, count in targets)
    return "\t".join(fields) + "\n"
