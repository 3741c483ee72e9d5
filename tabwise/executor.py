"""
tabwise.executor
----------------

Apply groupings to the live host, best effort.

The snapshot handed in goes stale as soon as the first call lands, and the
user may close tabs or windows while we run.  Every host call is therefore
wrapped on its own: a failure is logged, recorded in the report and skipped.
Only errors outside those per-item guards propagate to the caller.

Buckets and groups are processed strictly in order so that window and group
creation stay predictable.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .host import TabHost
from .models import (
    DistributionReport,
    TabGroup,
    TabId,
    WindowAssignment,
    WindowSnapshot,
)

_LOG = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Helpers                                                                     #
# --------------------------------------------------------------------------- #


def _unique_name(name: str, counts: dict[str, int]) -> str:
    """``Work``, then ``Work (2)``, ``Work (3)`` for later repeats."""
    seen = counts.get(name, 0)
    counts[name] = seen + 1
    return f"{name} ({seen + 1})" if seen else name


async def _ungroup_existing(
    host: TabHost, snapshot: WindowSnapshot, report: DistributionReport
) -> int:
    grouped = [t.id for t in snapshot.tabs if t.is_grouped]
    if not grouped:
        return 0
    try:
        await host.ungroup(grouped)
    except Exception as exc:
        _LOG.warning("Failed to ungroup %d tab(s): %s", len(grouped), exc)
        report.skip(f"ungroup: {exc}")
        return 0
    return len(grouped)


async def _create_group(
    host: TabHost,
    name: str,
    tab_ids: list[TabId],
    color_slot: int,
    report: DistributionReport,
) -> None:
    try:
        await host.create_group(name, tab_ids, color_slot)
        report.groups_created += 1
        return
    except Exception as exc:
        error = exc

    # Retry once with the tabs that are still open
    try:
        live = {t.id for t in await host.list_all_tabs()}
        remaining = [tid for tid in tab_ids if tid in live]
        if remaining and len(remaining) < len(tab_ids):
            await host.create_group(name, remaining, color_slot)
            report.groups_created += 1
            report.skip(f"group {name!r}: {len(tab_ids) - len(remaining)} tab(s) gone")
            return
    except Exception as exc:
        error = exc

    _LOG.warning("Failed to create group '%s': %s", name, error)
    report.skip(f"group {name!r}: {error}")


async def _open_window(
    host: TabHost,
    bucket: WindowAssignment,
    location: dict[TabId, int | None],
    report: DistributionReport,
) -> int | None:
    """
    Create the window for a pending *bucket*, seeded with one of its own tabs.

    A seed closed by the user is replaced by the next tab of the bucket.
    Returns ``None`` when no window could be created.
    """
    error: Exception | None = None
    for group in bucket.groups:
        for seed in group.tab_ids:
            if seed not in location:
                continue
            try:
                window_id = await host.create_window(seed)
            except Exception as exc:
                _LOG.debug("Failed to create window seeded with tab %s: %s", seed, exc)
                error = exc
                continue
            report.windows_created += 1
            report.moved += 1
            location[seed] = window_id
            return window_id

    _LOG.warning("Failed to create window for %d tab(s): %s", bucket.tab_count, error)
    report.skip(f"create window: {error}")
    return None


async def _move_into(
    host: TabHost,
    tab_ids: list[TabId],
    target: int,
    location: dict[TabId, int | None],
    report: DistributionReport,
) -> list[TabId]:
    """
    Move *tab_ids* into *target* and return the ids that ended up there.

    Tabs already resident are not moved.  When the batch move fails (usually
    because one tab was closed mid-run) every tab is retried on its own so a
    single bad id only costs itself.
    """
    pending = [tid for tid in tab_ids if location.get(tid) != target]
    if pending:
        try:
            await host.move_tabs(pending, target)
            arrived = pending
        except Exception as exc:
            _LOG.warning(
                "Batch move of %d tab(s) to window %s failed, moving one by one: %s",
                len(pending),
                target,
                exc,
            )
            arrived = []
            for tid in pending:
                try:
                    await host.move_tabs([tid], target)
                except Exception as tab_exc:
                    _LOG.warning("Failed to move tab %s: %s", tid, tab_exc)
                    report.skip(f"move tab {tid}: {tab_exc}")
                    continue
                arrived.append(tid)

        for tid in arrived:
            location[tid] = target
        report.moved += len(arrived)

    return [tid for tid in tab_ids if location.get(tid) == target]


# --------------------------------------------------------------------------- #
# Distribution                                                                #
# --------------------------------------------------------------------------- #


async def execute_plan(
    host: TabHost,
    plan: Sequence[WindowAssignment],
    snapshot: WindowSnapshot,
) -> DistributionReport:
    """
    Materialise *plan* on *host*.

    Reusable empty windows are taken from *snapshot* once, up front; when two
    pending buckets compete for a single empty window the second one creates
    a fresh window.
    """
    report = DistributionReport()
    # tab id -> window it currently sits in, as far as we know
    location = {t.id: t.window_id for t in snapshot.tabs}
    reusable = snapshot.empty_normal_windows()
    name_counts: dict[str, int] = {}

    await _ungroup_existing(host, snapshot, report)

    for bucket in plan:
        if not bucket.groups:
            continue

        target = bucket.window_id
        if target is None:
            if reusable:
                target = reusable.pop().id
                report.windows_reused += 1
            else:
                target = await _open_window(host, bucket, location, report)
                if target is None:
                    continue

        for slot, group in enumerate(bucket.groups):
            tab_ids = [tid for tid in group.tab_ids if tid in location]
            if not tab_ids:
                continue

            landed = await _move_into(host, tab_ids, target, location, report)
            if not landed:
                continue
            name = _unique_name(group.name, name_counts)
            await _create_group(host, name, landed, slot, report)

    report.windows_closed += await close_empty_windows(host, report)
    return report


async def close_empty_windows(
    host: TabHost, report: DistributionReport | None = None
) -> int:
    """
    Close normal windows left without tabs, never the last normal window.

    Returns the number of windows closed.
    """
    try:
        windows = await host.list_windows()
    except Exception as exc:
        _LOG.warning("Failed to list windows for cleanup: %s", exc)
        if report is not None:
            report.skip(f"list windows: {exc}")
        return 0

    normal = [w for w in windows if w.is_normal]
    remaining = len(normal)
    closed = 0
    for win in normal:
        if win.tab_count > 0 or remaining <= 1:
            continue
        try:
            await host.remove_window(win.id)
        except Exception as exc:
            _LOG.warning("Failed to close empty window %s: %s", win.id, exc)
            if report is not None:
                report.skip(f"close window {win.id}: {exc}")
            continue
        remaining -= 1
        closed += 1
    return closed


# --------------------------------------------------------------------------- #
# Grouping in place                                                           #
# --------------------------------------------------------------------------- #


async def apply_groups(
    host: TabHost, groups: Sequence[TabGroup], snapshot: WindowSnapshot
) -> DistributionReport:
    """
    Create native groups without moving tabs between windows.

    A native group cannot span windows, so a group whose tabs live in several
    windows becomes one native group per window: ``Research``,
    ``Research (2)``, ...
    """
    report = DistributionReport()
    name_counts: dict[str, int] = {}

    await _ungroup_existing(host, snapshot, report)

    for slot, group in enumerate(groups):
        by_window: dict[int | None, list[TabId]] = {}
        for tid in group.tab_ids:
            tab = snapshot.tab(tid)
            if tab is None:
                continue
            by_window.setdefault(tab.window_id, []).append(tid)

        for tab_ids in by_window.values():
            name = _unique_name(group.name, name_counts)
            await _create_group(host, name, tab_ids, slot, report)

    return report


async def ungroup_all(host: TabHost, snapshot: WindowSnapshot) -> int:
    """Remove every tab from its native group; returns how many were ungrouped."""
    return await _ungroup_existing(host, snapshot, DistributionReport())


async def close_tabs(
    host: TabHost, tab_ids: Sequence[TabId], report: DistributionReport
) -> int:
    """Close *tab_ids*, one by one if the batch fails; returns how many closed."""
    if not tab_ids:
        return 0
    try:
        await host.close_tabs(list(tab_ids))
        return len(tab_ids)
    except Exception as exc:
        _LOG.warning("Closing %d tab(s) failed, closing one by one: %s", len(tab_ids), exc)

    closed = 0
    for tid in tab_ids:
        try:
            await host.close_tabs([tid])
        except Exception as exc:
            _LOG.warning("Failed to close tab %s: %s", tid, exc)
            report.skip(f"close tab {tid}: {exc}")
            continue
        closed += 1
    return closed
