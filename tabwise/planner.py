"""
tabwise.planner
---------------

Assign validated groups to windows under a per-window tab capacity.

First-fit decreasing bin packing: good enough for tens of tabs, simple and
fully deterministic for a given (groups, capacity, snapshot).  Groups are
atomic; a group larger than the capacity gets a window of its own.
"""

from __future__ import annotations

from typing import Sequence

from .models import TabGroup, WindowAssignment, WindowSnapshot


def plan_distribution(
    groups: Sequence[TabGroup], capacity: int, snapshot: WindowSnapshot
) -> list[WindowAssignment]:
    """
    Return one ``WindowAssignment`` per target window, existing windows first.

    Existing non-empty normal windows are seeded as empty buckets in ascending
    id order.  Buckets opened afterwards have ``window_id=None`` and are
    resolved by the executor.
    """
    if capacity < 1:
        raise ValueError(f"capacity must be positive, got {capacity}")

    # sorted() is stable: equal sizes keep the model's order
    ordered = sorted((g for g in groups if g.tab_ids), key=lambda g: -g.size)

    plan = [WindowAssignment(w.id) for w in snapshot.non_empty_normal_windows()]

    for group in ordered:
        for bucket in plan:
            if bucket.tab_count + group.size <= capacity:
                bucket.add(group)
                break
        else:
            bucket = WindowAssignment(None)
            bucket.add(group)
            plan.append(bucket)

    return plan


def bucket_sizes(plan: Sequence[WindowAssignment]) -> list[list[int]]:
    """Group sizes per bucket, e.g. ``[[7, 3], [3, 2]]``."""
    return [[g.size for g in bucket.groups] for bucket in plan]
