"""
tabwise.organizer
-----------------

End-to-end flows: snapshot → model → validation → plan → execution → fresh
snapshot.

Everything that can reject the request (no tabs, provider errors, malformed
reply) happens before the first host mutation.  Once execution starts the
executor works best effort, and only an unexpected top-level failure is
reported as ``DistributionFailed``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Optional, Sequence

from .config import Settings, clamp_max_tabs
from .consolidate import consolidate_windows
from .errors import DistributionFailed, NoTabsError, OrganizeInProgress, TabwiseError
from .executor import apply_groups, close_tabs, execute_plan, ungroup_all
from .host import TabHost, read_snapshot
from .models import (
    ChatAction,
    ChatActionType,
    ChatContext,
    ChatMessage,
    ChatResponse,
    DistributionReport,
    OrganizeResult,
    TabGroup,
)
from .planner import plan_distribution
from .providers import ProviderAdapter
from .validator import match_tab_ids, parse_group_action

_LOG = logging.getLogger(__name__)


class TabOrganizer:
    """
    Wires a host, a provider adapter and settings together.

    Only one mutating flow runs at a time per organizer; a second request
    while one is in flight fails fast with ``OrganizeInProgress``.
    """

    def __init__(
        self,
        host: TabHost,
        adapter: Optional[ProviderAdapter],
        settings: Settings,
    ) -> None:
        self.host = host
        self.adapter = adapter
        self.settings = settings
        self._busy = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @contextlib.asynccontextmanager
    async def _single_flight(self, operation: str) -> AsyncIterator[None]:
        if self._busy.locked():
            raise OrganizeInProgress(
                f"Cannot {operation}: another organize operation is in progress"
            )
        async with self._busy:
            try:
                yield
            except TabwiseError:
                raise
            except Exception as exc:
                _LOG.error("%s failed: %s", operation, exc)
                raise DistributionFailed(f"Failed to {operation}: {exc}") from exc

    def _require_adapter(self) -> ProviderAdapter:
        if self.adapter is None:
            # Raises NotConfiguredError with the reason
            self.settings.provider_config()
            raise DistributionFailed("No provider adapter available")
        return self.adapter

    async def _ask_model(self, prompt: Optional[str]):
        adapter = self._require_adapter()
        snapshot = await read_snapshot(self.host)
        if not snapshot.tabs:
            raise NoTabsError("No tabs to organize")
        groups = await adapter.group_tabs(snapshot.tabs, prompt)
        _LOG.info("Model proposed %d group(s) for %d tab(s)", len(groups), len(snapshot.tabs))
        return snapshot, groups

    async def _finish(
        self, groups: list[TabGroup], report: DistributionReport
    ) -> OrganizeResult:
        if report.skipped:
            _LOG.info("Completed with %d skipped step(s)", len(report.skipped))
        return OrganizeResult(groups, await read_snapshot(self.host), report)

    # ---------------- Public API ---------------- #

    async def organize(self, prompt: Optional[str] = None) -> OrganizeResult:
        """Group tabs in place, without moving them between windows."""
        async with self._single_flight("organize tabs"):
            snapshot, groups = await self._ask_model(prompt)
            report = await apply_groups(self.host, groups, snapshot)
            return await self._finish(groups, report)

    async def distribute(
        self, prompt: Optional[str] = None, max_tabs_per_window: Optional[int] = None
    ) -> OrganizeResult:
        """Group tabs and spread the groups over windows under the capacity."""
        capacity = clamp_max_tabs(
            self.settings.max_tabs_per_window
            if max_tabs_per_window is None
            else max_tabs_per_window
        )
        async with self._single_flight("distribute tabs"):
            snapshot, groups = await self._ask_model(prompt)
            plan = plan_distribution(groups, capacity, snapshot)
            _LOG.info(
                "Distributing %d group(s) over %d window(s) (capacity %d)",
                len(groups),
                len(plan),
                capacity,
            )
            report = await execute_plan(self.host, plan, snapshot)
            return await self._finish(groups, report)

    async def consolidate(self) -> OrganizeResult:
        """Move every tab into a single window."""
        async with self._single_flight("consolidate windows"):
            snapshot = await read_snapshot(self.host)
            report = await consolidate_windows(self.host, snapshot)
            return await self._finish([], report)

    async def ungroup(self) -> OrganizeResult:
        async with self._single_flight("ungroup tabs"):
            snapshot = await read_snapshot(self.host)
            await ungroup_all(self.host, snapshot)
            return await self._finish([], DistributionReport())

    async def chat(
        self,
        user_message: str,
        history: Sequence[ChatMessage] = (),
        include_page: bool = False,
    ) -> ChatResponse:
        """
        Ask the model about the open tabs; never mutates the host.

        With *include_page* the text of the page the user is looking at is
        sent along.  A page that cannot be read is left out, not an error.
        """
        adapter = self._require_adapter()
        snapshot = await read_snapshot(self.host)
        page = None
        if include_page:
            try:
                page = await self.host.active_tab_content()
            except Exception as exc:
                _LOG.warning("Failed to read active tab content: %s", exc)
        context = ChatContext(
            tabs=snapshot.tabs,
            conversation_history=list(history),
            active_tab_content=page or None,
        )
        return await adapter.chat(context, user_message)

    async def execute_action(self, action: ChatAction) -> DistributionReport:
        """
        Carry out an action suggested by ``chat``.

        ``group`` regroups the named tabs in place, ``close`` closes tabs and
        ``highlight`` focuses the first named tab.  ``sort`` and ``none`` do
        nothing.  Ids the model made up are ignored; every host call is best
        effort, as for ``organize``.
        """
        report = DistributionReport()
        if action.type in (ChatActionType.NONE, ChatActionType.SORT):
            _LOG.info("Nothing to execute for '%s' action", action.type.value)
            return report

        async with self._single_flight(f"run {action.type.value} action"):
            snapshot = await read_snapshot(self.host)
            known = snapshot.tab_ids()

            if action.type is ChatActionType.GROUP:
                groups = parse_group_action(action.payload, known)
                return await apply_groups(self.host, groups, snapshot)

            tab_ids = match_tab_ids(action.payload, known)
            if not tab_ids:
                report.skip(f"{action.type.value}: no known tab ids")
            elif action.type is ChatActionType.CLOSE:
                await close_tabs(self.host, tab_ids, report)
            else:
                try:
                    await self.host.focus_tab(tab_ids[0])
                except Exception as exc:
                    _LOG.warning("Failed to focus tab %s: %s", tab_ids[0], exc)
                    report.skip(f"highlight tab {tab_ids[0]}: {exc}")
            return report
