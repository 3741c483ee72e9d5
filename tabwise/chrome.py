"""
tabwise.chrome
--------------

``TabHost`` implementation for a running Google Chrome, driven over the
Chrome DevTools Protocol (CDP).

Example
-------
>>> async with ChromeHost() as host:
...     snapshot = await read_snapshot(host)

Notes
~~~~~
• Tabs are ``page`` targets; their ids are CDP target ids.
• CDP cannot re-parent a target into another window.  A move therefore
  re-opens the tab's URL next to a tab of the destination window and closes
  the original.  The host remembers which target now stands for the original
  id, so ids handed out by ``list_all_tabs`` stay valid for the lifetime of
  the host.
• Tab groups need the ``TabGroups`` CDP domain, probed once on connect.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import aiohttp
from playwright.async_api import (
    async_playwright,
    Browser,
    Error as PlaywrightError,
)

from .chrome_utils import scan_chrome_processes
from .constants import (
    ACTIVE_TAB_CONTENT_LIMIT,
    CHROME_PROCESS_NAMES,
    CHROME_REMOTE_PORT,
    INTERNAL_URL_PREFIXES,
    RESTRICTED_PAGE_PREFIXES,
)
from .host import color_for_slot
from .models import Tab, TabId, Window, WindowKind

_LOG = logging.getLogger(__name__)


class ChromeHost:
    """
    Async context manager that attaches to Chrome's remote-debugging port.

    Chrome must already run with ``--remote-debugging-port``; unlike a
    browser automation session we never launch or quit the user's browser.
    """

    def __init__(self, port: int = CHROME_REMOTE_PORT) -> None:
        self._playwright = None
        self._browser: Browser | None = None
        self._cdp_session = None
        self._tab_groups_supported: bool | None = None
        self._remote_port = port
        # original target id -> target currently showing that tab
        self._aliases: dict[str, str] = {}

    # ---------------- Context manager plumbing ---------------- #

    async def __aenter__(self) -> "ChromeHost":
        await self._ensure_connection()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # Detach but leave Chrome running.
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    # ---------------- Connection ---------------- #

    async def _ensure_connection(self) -> None:
        if self._browser:
            return

        ws_endpoint = await self._get_websocket_endpoint()
        if not ws_endpoint:
            raise RuntimeError(
                "Unable to reach Chrome remote debugging on port "
                f"{self._remote_port}. Start Chrome with "
                f"--remote-debugging-port={self._remote_port} or set "
                "$CHROME_REMOTE_PORT to match the running instance."
            )

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.connect_over_cdp(
                ws_endpoint
            )
        except PlaywrightError as exc:
            await self._playwright.stop()
            self._playwright = None
            raise RuntimeError(f"Failed to attach to Chrome: {exc}") from exc

        await self._probe_tab_groups()

    async def _get_websocket_endpoint(self) -> str | None:
        """Fetch the WebSocket debugger URL from Chrome's /json/version endpoint.

        Tries the configured port first, then the port found on a running
        Chrome command line.
        """

        async def fetch(port: int) -> str | None:
            url = f"http://127.0.0.1:{port}/json/version"
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.get(
                        url, timeout=aiohttp.ClientTimeout(total=2)
                    ) as resp:
                        if resp.status == 200:
                            data = await resp.json()
                            return data.get("webSocketDebuggerUrl")
            except (aiohttp.ClientError, TimeoutError) as exc:
                _LOG.debug("No CDP endpoint on port %s: %s", port, exc)
            return None

        ws = await fetch(self._remote_port)
        if ws:
            return ws

        status = scan_chrome_processes(CHROME_PROCESS_NAMES)
        if status.remote_debug and status.debug_port and status.debug_port != self._remote_port:
            self._remote_port = status.debug_port
            return await fetch(self._remote_port)
        return None

    async def _get_cdp_connection(self):
        """Return a cached browser-level CDPSession."""
        if self._cdp_session and not getattr(self._cdp_session, "_disposed", False):
            return self._cdp_session
        if not self._browser:
            raise RuntimeError("Not connected to Chrome")
        # TabGroups and Target.* commands need a browser-level session
        self._cdp_session = await self._browser.new_browser_cdp_session()
        return self._cdp_session

    async def _probe_tab_groups(self) -> None:
        """Set self._tab_groups_supported based on CDP capability."""
        if self._tab_groups_supported is not None:
            return

        cdp = await self._get_cdp_connection()

        try:
            doms = await cdp.send("Schema.getDomains")
            names = {d.get("name") for d in (doms or {}).get("domains", [])}
            self._tab_groups_supported = "TabGroups" in names
            if self._tab_groups_supported:
                return
        except Exception:
            # Schema domain may be unavailable; fall back to a direct probe
            pass

        try:
            await cdp.send("TabGroups.get", {"groupId": -1})
            self._tab_groups_supported = True
        except PlaywrightError as exc:
            msg = str(exc).lower()
            if "methodnotfound" in msg or "wasn't found" in msg or "wasnt found" in msg:
                self._tab_groups_supported = False
            else:
                # Any other error implies the domain exists but parameters were invalid
                self._tab_groups_supported = True
        except Exception:
            self._tab_groups_supported = False

    def _require_tab_groups(self) -> None:
        if not self._tab_groups_supported:
            raise RuntimeError("Chrome build lacks Tab Groups API")

    # ---------------- Target helpers ---------------- #

    def _target_id(self, tab_id: TabId) -> str:
        return self._aliases.get(str(tab_id), str(tab_id))

    def _logical_ids(self) -> dict[str, str]:
        """current target id -> id handed out to callers"""
        return {current: original for original, current in self._aliases.items()}

    async def _page_targets(self) -> list[dict[str, Any]]:
        cdp = await self._get_cdp_connection()
        res = await cdp.send("Target.getTargets")
        return [
            ti
            for ti in res.get("targetInfos", [])
            if ti.get("type") == "page"
            and not (ti.get("url") or "").startswith(INTERNAL_URL_PREFIXES)
        ]

    async def _window_for(self, target_id: str) -> int:
        cdp = await self._get_cdp_connection()
        res = await cdp.send("Browser.getWindowForTarget", {"targetId": target_id})
        return res["windowId"]

    async def _target_windows(self) -> list[tuple[dict[str, Any], int]]:
        pairs = []
        for ti in await self._page_targets():
            try:
                pairs.append((ti, await self._window_for(ti["targetId"])))
            except Exception as exc:
                # Target vanished between the two calls
                _LOG.debug("No window for target %s: %s", ti.get("targetId"), exc)
        return pairs

    async def _group_membership(self) -> dict[str, int]:
        """target id -> group id, when the TabGroups domain can report it."""
        if not self._tab_groups_supported:
            return {}
        cdp = await self._get_cdp_connection()
        try:
            res = await cdp.send("TabGroups.query", {})
        except Exception as exc:
            _LOG.debug("TabGroups.query failed: %s", exc)
            return {}
        membership = {}
        for grp in res.get("groups", []):
            for tid in grp.get("tabIds", []):
                membership[str(tid)] = grp["groupId"]
        return membership

    async def _reopen(self, tab_id: TabId, url: str, params: dict[str, Any]) -> str:
        """Open *url* as a new target, close the old one and re-point *tab_id*."""
        cdp = await self._get_cdp_connection()
        old_target = self._target_id(tab_id)
        res = await cdp.send("Target.createTarget", {"url": url, **params})
        new_target = res["targetId"]
        await cdp.send("Target.closeTarget", {"targetId": old_target})
        self._aliases[str(tab_id)] = new_target
        return new_target

    async def _url_of(self, tab_id: TabId) -> str:
        target = self._target_id(tab_id)
        for ti in await self._page_targets():
            if ti["targetId"] == target:
                return ti.get("url") or "about:blank"
        raise RuntimeError(f"Tab {tab_id} no longer exists")

    # ---------------- TabHost ---------------- #

    async def list_all_tabs(self) -> list[Tab]:
        logical = self._logical_ids()
        membership = await self._group_membership()
        return [
            Tab(
                id=logical.get(ti["targetId"], ti["targetId"]),
                title=ti.get("title") or "Untitled",
                url=ti.get("url") or "",
                group_id=membership.get(ti["targetId"]),
                window_id=window_id,
            )
            for ti, window_id in await self._target_windows()
        ]

    async def list_windows(self) -> list[Window]:
        counts: dict[int, int] = {}
        for _, window_id in await self._target_windows():
            counts[window_id] = counts.get(window_id, 0) + 1
        # CDP only reports windows that host page targets
        return [Window(wid, WindowKind.NORMAL, n) for wid, n in counts.items()]

    async def ungroup(self, tab_ids: Sequence[TabId]) -> None:
        self._require_tab_groups()
        cdp = await self._get_cdp_connection()
        for tab_id in tab_ids:
            await cdp.send("TabGroups.removeTab", {"tabId": self._target_id(tab_id)})

    async def create_group(
        self, name: str, tab_ids: Sequence[TabId], color_slot: int
    ) -> int:
        self._require_tab_groups()
        if not tab_ids:
            raise ValueError("Cannot create an empty tab group")
        cdp = await self._get_cdp_connection()
        window_id = await self._window_for(self._target_id(tab_ids[0]))
        res = await cdp.send(
            "TabGroups.create",
            {
                "windowId": window_id,
                "title": name,
                "color": color_for_slot(color_slot).value,
            },
        )
        group_id = res["groupId"]
        for tab_id in tab_ids:
            await cdp.send(
                "TabGroups.addTab", {"groupId": group_id, "tabId": self._target_id(tab_id)}
            )
        return group_id

    async def move_tabs(self, tab_ids: Sequence[TabId], window_id: int) -> None:
        pairs = await self._target_windows()
        window_of = {ti["targetId"]: wid for ti, wid in pairs}
        url_of = {ti["targetId"]: ti.get("url") or "about:blank" for ti, _ in pairs}
        anchor: Optional[str] = next(
            (tid for tid, wid in window_of.items() if wid == window_id), None
        )

        for tab_id in tab_ids:
            target = self._target_id(tab_id)
            if target not in window_of:
                raise RuntimeError(f"Tab {tab_id} no longer exists")
            if window_of[target] == window_id:
                continue
            if anchor is None:
                raise RuntimeError(f"Window {window_id} has no tab to anchor a move")
            # Chrome opens the new target in the same window as its opener
            await self._reopen(
                tab_id,
                url_of[target],
                {"newWindow": False, "background": True, "openerId": anchor},
            )

    async def create_window(self, seed_tab_id: TabId) -> int:
        url = await self._url_of(seed_tab_id)
        new_target = await self._reopen(
            seed_tab_id, url, {"newWindow": True, "background": True}
        )
        return await self._window_for(new_target)

    async def remove_window(self, window_id: int) -> None:
        cdp = await self._get_cdp_connection()
        for ti, wid in await self._target_windows():
            if wid == window_id:
                await cdp.send("Target.closeTarget", {"targetId": ti["targetId"]})

    async def close_tabs(self, tab_ids: Sequence[TabId]) -> None:
        cdp = await self._get_cdp_connection()
        live = {ti["targetId"] for ti in await self._page_targets()}
        for tab_id in tab_ids:
            target = self._target_id(tab_id)
            if target not in live:
                raise RuntimeError(f"Tab {tab_id} no longer exists")
            await cdp.send("Target.closeTarget", {"targetId": target})
            self._aliases.pop(str(tab_id), None)

    async def focus_tab(self, tab_id: TabId) -> None:
        cdp = await self._get_cdp_connection()
        await cdp.send("Target.activateTarget", {"targetId": self._target_id(tab_id)})

    async def active_tab_content(self) -> str:
        """Inner text of the first visible page, truncated."""
        if not self._browser:
            raise RuntimeError("Not connected to Chrome")
        for context in self._browser.contexts:
            for page in context.pages:
                if page.url.startswith(RESTRICTED_PAGE_PREFIXES):
                    continue
                if await page.evaluate("document.visibilityState") != "visible":
                    continue
                text = await page.evaluate(
                    "document.body ? document.body.innerText : ''"
                )
                return (text or "")[:ACTIVE_TAB_CONTENT_LIMIT]
        return ""
