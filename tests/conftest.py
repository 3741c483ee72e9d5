"""Shared pytest fixtures for tests."""

from __future__ import annotations

from typing import Sequence

import pytest

from tabwise.host import color_for_slot
from tabwise.models import Tab, Window, WindowKind


class FakeHost:
    """
    In-memory ``TabHost``.

    Windows keep their tabs in order and are not closed automatically when
    they run empty.  ``failures`` maps a method name to the exception it
    should raise; ``close_tab`` simulates a user closing a tab mid-run.
    """

    def __init__(self) -> None:
        self.windows: dict[int, list[int]] = {}
        self.kinds: dict[int, WindowKind] = {}
        self.titles: dict[int, str] = {}
        self.groups: dict[int, dict] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self.active: int | None = None
        self.page_text = ""
        self._next_tab = 1
        self._next_window = 100
        self._next_group = 1

    # ---------------- test helpers ---------------- #

    def add_window(self, n_tabs: int, kind: WindowKind = WindowKind.NORMAL) -> int:
        wid = self._next_window
        self._next_window += 1
        self.windows[wid] = []
        self.kinds[wid] = kind
        for _ in range(n_tabs):
            tid = self._next_tab
            self._next_tab += 1
            self.titles[tid] = f"Tab {tid}"
            self.windows[wid].append(tid)
        return wid

    def close_tab(self, tab_id: int) -> None:
        for ids in self.windows.values():
            if tab_id in ids:
                ids.remove(tab_id)
        self._drop_from_groups([tab_id])

    def window_of(self, tab_id: int) -> int | None:
        for wid, ids in self.windows.items():
            if tab_id in ids:
                return wid
        return None

    def normal_sizes(self) -> list[int]:
        return [
            len(ids)
            for wid, ids in self.windows.items()
            if self.kinds[wid] is WindowKind.NORMAL
        ]

    def group_of(self, tab_id: int) -> int | None:
        for gid, grp in self.groups.items():
            if tab_id in grp["tab_ids"]:
                return gid
        return None

    def group_names(self) -> list[str]:
        return [grp["name"] for grp in self.groups.values()]

    def _drop_from_groups(self, tab_ids: Sequence[int]) -> None:
        for gid in list(self.groups):
            members = self.groups[gid]["tab_ids"]
            members[:] = [t for t in members if t not in tab_ids]
            if not members:
                del self.groups[gid]

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    def _require_tab(self, tab_id) -> None:
        if self.window_of(tab_id) is None:
            raise RuntimeError(f"No tab with id: {tab_id}")

    # ---------------- TabHost ---------------- #

    async def list_all_tabs(self) -> list[Tab]:
        self._record("list_all_tabs")
        return [
            Tab(
                id=tid,
                title=self.titles[tid],
                url=f"https://example.com/{tid}",
                group_id=self.group_of(tid),
                window_id=wid,
            )
            for wid, ids in self.windows.items()
            for tid in ids
        ]

    async def list_windows(self) -> list[Window]:
        self._record("list_windows")
        return [Window(wid, self.kinds[wid], len(ids)) for wid, ids in self.windows.items()]

    async def ungroup(self, tab_ids) -> None:
        self._record("ungroup", list(tab_ids))
        self._drop_from_groups(list(tab_ids))

    async def move_tabs(self, tab_ids, window_id: int) -> None:
        self._record("move_tabs", list(tab_ids), window_id)
        if window_id not in self.windows:
            raise RuntimeError(f"No window with id: {window_id}")
        for tid in tab_ids:
            self._require_tab(tid)
        for tid in tab_ids:
            source = self.window_of(tid)
            if source == window_id:
                continue
            self.windows[source].remove(tid)
            self.windows[window_id].append(tid)
            self._drop_from_groups([tid])

    async def create_group(self, name: str, tab_ids, color_slot: int) -> int:
        self._record("create_group", name, list(tab_ids), color_slot)
        for tid in tab_ids:
            self._require_tab(tid)
        if len({self.window_of(t) for t in tab_ids}) != 1:
            raise RuntimeError("Tabs of a group must share one window")
        self._drop_from_groups(list(tab_ids))
        gid = self._next_group
        self._next_group += 1
        self.groups[gid] = {
            "name": name,
            "color": color_for_slot(color_slot),
            "tab_ids": list(tab_ids),
        }
        return gid

    async def create_window(self, seed_tab_id) -> int:
        self._record("create_window", seed_tab_id)
        self._require_tab(seed_tab_id)
        self.windows[self.window_of(seed_tab_id)].remove(seed_tab_id)
        self._drop_from_groups([seed_tab_id])
        wid = self._next_window
        self._next_window += 1
        self.windows[wid] = [seed_tab_id]
        self.kinds[wid] = WindowKind.NORMAL
        return wid

    async def remove_window(self, window_id: int) -> None:
        self._record("remove_window", window_id)
        if window_id not in self.windows:
            raise RuntimeError(f"No window with id: {window_id}")
        self._drop_from_groups(self.windows.pop(window_id))
        del self.kinds[window_id]

    async def close_tabs(self, tab_ids) -> None:
        self._record("close_tabs", list(tab_ids))
        for tid in tab_ids:
            self._require_tab(tid)
        for tid in tab_ids:
            self.close_tab(tid)

    async def focus_tab(self, tab_id) -> None:
        self._record("focus_tab", tab_id)
        self._require_tab(tab_id)
        self.active = tab_id

    async def active_tab_content(self) -> str:
        self._record("active_tab_content")
        return self.page_text


@pytest.fixture
def host() -> FakeHost:
    """Empty simulated host; tests add windows as needed."""
    return FakeHost()
