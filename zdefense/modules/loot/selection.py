"""
Loot selection - pure two-stage random choice.

Stage 1 (`roll_loot_table`): walk the active tables in a stable order, draw
a uniform value in [0, 1) per table and pick the first table whose draw is
below its `drop_chance`.

Stage 2 (`select_weighted_entry`): draw a uniform integer in
[0, total_weight) and walk the entries accumulating weight; the first entry
whose cumulative weight exceeds the draw wins. O(entries).

Both functions take the random source explicitly, so tests can seed it.
No I/O happens here.
"""

from __future__ import annotations

import random
from typing import Optional, Protocol, Sequence, TypeVar

from zdefense.modules.shared.exceptions import (
    EmptyLootTableError,
    NoActiveLootTablesError,
    NoDropFromAnyTableError,
    NonPositiveWeightError,
)


class DropSource(Protocol):
    drop_chance: float


class WeightedEntry(Protocol):
    weight: int


TableT = TypeVar("TableT", bound=DropSource)
EntryT = TypeVar("EntryT", bound=WeightedEntry)


def roll_loot_table(tables: Sequence[TableT], rng: random.Random) -> TableT:
    """
    Pick the first table whose drop roll hits.

    Raises:
        NoActiveLootTablesError: `tables` is empty
        NoDropFromAnyTableError: every roll missed
    """
    if not tables:
        raise NoActiveLootTablesError()

    for table in tables:
        if rng.random() < table.drop_chance:
            return table

    raise NoDropFromAnyTableError(len(tables))


def select_weighted_entry(
    entries: Sequence[EntryT],
    rng: random.Random,
    loot_table_id: Optional[int] = None,
) -> EntryT:
    """
    Weighted choice over `entries`.

    >>> from types import SimpleNamespace
    >>> entries = [SimpleNamespace(weight=1), SimpleNamespace(weight=3)]
    >>> select_weighted_entry(entries, random.Random(7)) in entries
    True

    Raises:
        EmptyLootTableError: `entries` is empty
        NonPositiveWeightError: the weights sum to zero or less
    """
    if not entries:
        raise EmptyLootTableError(loot_table_id)

    total_weight = sum(entry.weight for entry in entries)
    if total_weight <= 0:
        raise NonPositiveWeightError(loot_table_id, total_weight)

    draw = rng.randrange(total_weight)
    cumulative = 0
    for entry in entries:
        cumulative += entry.weight
        if draw < cumulative:
            return entry

    # Unreachable with positive weights; negative weights can leave a gap.
    raise NonPositiveWeightError(loot_table_id, total_weight)
