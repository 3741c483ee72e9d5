"""
tabwise.models
--------------

In-memory records shared by the validator, planner and executor.

Design
~~~~~~
• Tab / Window identifiers are owned by the host; tabwise never invents them.
• ``WindowSnapshot`` is a point-in-time read and goes stale on the first
  mutation, so nothing downstream treats it as live state.
• ``TabGroup`` and ``WindowAssignment`` are ephemeral: recomputed on every
  request and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .constants import TAB_GROUP_ID_NONE

# CDP hosts use string target ids; extension-style hosts use ints.
TabId = Union[int, str]


# --------------------------------------------------------------------------- #
# Tabs & windows                                                              #
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class Tab:
    """One browsing context as reported by the host."""

    id: TabId
    title: str
    url: str
    fav_icon_url: Optional[str] = None
    group_id: int | None = None
    window_id: int | None = None

    @property
    def is_grouped(self) -> bool:
        return self.group_id is not None and self.group_id != TAB_GROUP_ID_NONE


class WindowKind(str, Enum):
    NORMAL = "normal"
    POPUP = "popup"
    APP = "app"
    DEVTOOLS = "devtools"
    OTHER = "other"


@dataclass(slots=True)
class Window:
    id: int
    kind: WindowKind = WindowKind.NORMAL
    tab_count: int = 0

    @property
    def is_normal(self) -> bool:
        return self.kind is WindowKind.NORMAL


@dataclass(slots=True)
class WindowSnapshot:
    """All tabs and windows at one point in time."""

    tabs: list[Tab] = field(default_factory=list)
    windows: list[Window] = field(default_factory=list)

    def tab_ids(self) -> list[TabId]:
        return [t.id for t in self.tabs]

    def tab(self, tab_id: TabId) -> Optional[Tab]:
        for t in self.tabs:
            if t.id == tab_id:
                return t
        return None

    def normal_windows(self) -> list[Window]:
        """Normal windows in snapshot order."""
        return [w for w in self.windows if w.is_normal]

    def non_empty_normal_windows(self) -> list[Window]:
        """Normal windows holding at least one tab, ascending by id."""
        return sorted(
            (w for w in self.windows if w.is_normal and w.tab_count > 0),
            key=lambda w: w.id,
        )

    def empty_normal_windows(self) -> list[Window]:
        return [w for w in self.windows if w.is_normal and w.tab_count == 0]


# --------------------------------------------------------------------------- #
# Grouping                                                                    #
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class TabGroup:
    """A named set of tab ids proposed by the model (after validation)."""

    name: str
    tab_ids: list[TabId] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.tab_ids)


# Every snapshot tab id in exactly one group.
Partition = list[TabGroup]


@dataclass(slots=True)
class WindowAssignment:
    """
    One planned window: an existing window id, or ``None`` while the window
    is still pending creation.
    """

    window_id: int | None
    groups: list[TabGroup] = field(default_factory=list)
    tab_count: int = 0

    @property
    def is_pending(self) -> bool:
        return self.window_id is None

    def add(self, group: TabGroup) -> None:
        self.groups.append(group)
        self.tab_count += group.size


@dataclass(slots=True)
class DistributionReport:
    """What a best-effort run actually did, and what it had to skip."""

    moved: int = 0
    groups_created: int = 0
    windows_created: int = 0
    windows_reused: int = 0
    windows_closed: int = 0
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped

    def skip(self, reason: str) -> None:
        self.skipped.append(reason)


@dataclass(slots=True)
class OrganizeResult:
    """Outcome returned to callers together with a fresh snapshot."""

    groups: list[TabGroup]
    snapshot: WindowSnapshot
    report: DistributionReport


# --------------------------------------------------------------------------- #
# Chat                                                                        #
# --------------------------------------------------------------------------- #


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(slots=True)
class ChatMessage:
    role: ChatRole
    content: str


@dataclass(slots=True)
class ChatContext:
    tabs: list[Tab]
    conversation_history: list[ChatMessage] = field(default_factory=list)
    active_tab_content: Optional[str] = None


class ChatActionType(str, Enum):
    SORT = "sort"
    GROUP = "group"
    CLOSE = "close"
    HIGHLIGHT = "highlight"
    NONE = "none"


@dataclass(slots=True)
class ChatAction:
    type: ChatActionType = ChatActionType.NONE
    # Tab ids for sort/close/highlight, {"groups": [...]} for group.
    payload: Any = None


@dataclass(slots=True)
class ChatResponse:
    message: str
    action: ChatAction = field(default_factory=ChatAction)
