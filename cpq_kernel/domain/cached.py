"""
Cached -- A computed value plus the inputs and rule version that produced it.

Responsibility:
    Positions keep their last ``EmployerCostResult`` so that edits to
    non-cost fields (schedule, description) never drift historical
    numbers.  ``Cached`` makes that explicit: the value travels with the
    ``input_key`` it was computed from and the payroll rule version used.
    Staleness is a pure predicate over those fields, not ad hoc
    comparisons in update handlers.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - A cached value is never mutated; recompute produces a new Cached.
    - A rule-version change alone does NOT make a value stale.  Old quotes
      keep the numbers they were priced with until an input changes or a
      caller forces recomputation.  ``is_version_behind`` exposes the
      version drift separately for advisory checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Cached(Generic[T]):
    value: T
    computed_at_version: str
    input_key: tuple
    computed_at: datetime


def is_stale(
    cached: Cached | None,
    current_key: tuple,
    force: bool = False,
) -> bool:
    """True when the cached value must be recomputed.

    Missing cache, forced recomputation, or any difference between the
    stored input key and the current one.
    """
    if force or cached is None:
        return True
    return cached.input_key != current_key


def is_version_behind(cached: Cached | None, latest_version_id: str) -> bool:
    """True when the value was computed with a superseded rule version."""
    if cached is None:
        return False
    return cached.computed_at_version != latest_version_id
