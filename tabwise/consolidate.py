"""Collapse every normal window into one."""

from __future__ import annotations

import logging

from .host import TabHost
from .models import DistributionReport, WindowSnapshot

_LOG = logging.getLogger(__name__)


async def consolidate_windows(
    host: TabHost, snapshot: WindowSnapshot
) -> DistributionReport:
    """
    Move all tabs into the first normal window of *snapshot*, then close the
    other normal windows.  Tab groups are left alone.
    """
    report = DistributionReport()
    if len(snapshot.windows) <= 1:
        return report

    normal = snapshot.normal_windows()
    if not normal:
        return report
    target = normal[0].id
    sources = {w.id for w in normal[1:]}

    for tab in snapshot.tabs:
        if tab.window_id not in sources:
            continue
        try:
            await host.move_tabs([tab.id], target)
            report.moved += 1
        except Exception as exc:
            _LOG.warning("Failed to move tab %s during consolidation: %s", tab.id, exc)
            report.skip(f"move tab {tab.id}: {exc}")

    for win in normal[1:]:
        try:
            await host.remove_window(win.id)
            report.windows_closed += 1
        except Exception as exc:
            _LOG.warning("Failed to close window %s: %s", win.id, exc)
            report.skip(f"close window {win.id}: {exc}")

    _LOG.debug("Consolidated %d window(s) into %s", len(sources), target)
    return report
