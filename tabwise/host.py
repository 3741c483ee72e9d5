"""
tabwise.host
------------

The window/tab host capability consumed by the executor.

Every method may fail on its own (tab closed by the user mid-run, permission
denied, window already gone).  Callers treat each call as independently
fallible; nothing here is transactional.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from .constants import COLOR_CYCLE, TabColor
from .models import Tab, TabId, Window, WindowSnapshot


class TabHost(Protocol):
    async def list_all_tabs(self) -> list[Tab]: ...

    async def list_windows(self) -> list[Window]: ...

    async def ungroup(self, tab_ids: Sequence[TabId]) -> None: ...

    async def move_tabs(self, tab_ids: Sequence[TabId], window_id: int) -> None:
        """Move *tab_ids* to the end of *window_id*; resident tabs are a no-op."""
        ...

    async def create_group(
        self, name: str, tab_ids: Sequence[TabId], color_slot: int
    ) -> int: ...

    async def create_window(self, seed_tab_id: TabId) -> int:
        """Open a window holding *seed_tab_id* and return its id."""
        ...

    async def remove_window(self, window_id: int) -> None: ...

    async def close_tabs(self, tab_ids: Sequence[TabId]) -> None: ...

    async def focus_tab(self, tab_id: TabId) -> None:
        """Make *tab_id* the active tab of its window."""
        ...

    async def active_tab_content(self) -> str:
        """Visible text of the page the user is looking at, or ``""``."""
        ...


def color_for_slot(slot: int) -> TabColor:
    """Deterministic colour for a group slot; cycles through Chrome's palette."""
    return COLOR_CYCLE[slot % len(COLOR_CYCLE)]


async def read_snapshot(host: TabHost) -> WindowSnapshot:
    """Read tabs, then windows, into one snapshot."""
    tabs = await host.list_all_tabs()
    windows = await host.list_windows()
    return WindowSnapshot(tabs=tabs, windows=windows)
