"""
tabwise.prompts
---------------

Prompt construction and chat-reply parsing shared by every provider adapter.
"""

from __future__ import annotations

import json
import logging
import textwrap
from typing import Optional, Sequence
from urllib.parse import urlsplit

from .models import (
    ChatAction,
    ChatActionType,
    ChatResponse,
    Tab,
)
from .constants import CHAT_PAGE_CONTEXT_LIMIT, CHAT_PAGE_CONTEXT_MIN
from .validator import extract_json_block

_LOG = logging.getLogger(__name__)

GROUPING_SYSTEM_PROMPT = (
    "You are a helpful tab organization assistant. Respond only with valid JSON."
)

_TITLE_LIMIT = 50
_URL_LIMIT = 70
_RAW_URL_LIMIT = 50


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def sanitize_url(url: str) -> str:
    """Keep only origin + path to save tokens."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return _truncate(url, _RAW_URL_LIMIT)
    return _truncate(f"{parts.scheme}://{parts.netloc}{parts.path}", _URL_LIMIT)


def sanitize_tabs(tabs: Sequence[Tab]) -> list[Tab]:
    """Return copies of *tabs* with short titles and URLs."""
    return [
        Tab(
            id=t.id,
            title=_truncate(t.title, _TITLE_LIMIT),
            url=sanitize_url(t.url),
            fav_icon_url=t.fav_icon_url,
            group_id=t.group_id,
            window_id=t.window_id,
        )
        for t in tabs
    ]


def _tab_lines(tabs: Sequence[Tab]) -> str:
    return "\n".join(
        f'{i}. [ID:{t.id}] "{t.title}" - {t.url}' for i, t in enumerate(tabs, 1)
    )


def build_grouping_prompt(tabs: Sequence[Tab], custom_prompt: Optional[str] = None) -> str:
    """Build the instruction asking the model to partition *tabs*."""
    total = len(tabs)
    tab_ids = ", ".join(str(t.id) for t in tabs)
    user_block = (
        f"=== USER INSTRUCTION ===\n{custom_prompt.strip()}\n\n"
        if custom_prompt and custom_prompt.strip()
        else ""
    )

    return (
        textwrap.dedent("""\
        You are an intelligent tab organizer. Your task is to organize ALL {total} browser tabs into logical groups.

        === TABS ({total} total) ===
        {tab_list}

        === TAB IDs ===
        {tab_ids}

        """).format(total=total, tab_list=_tab_lines(tabs), tab_ids=tab_ids)
        + user_block
        + textwrap.dedent("""\
        === CRITICAL REQUIREMENTS ===
        1. EVERY SINGLE TAB MUST BE ASSIGNED TO A GROUP - no exceptions!
        2. You have exactly {total} tabs with IDs: {tab_ids}
        3. The sum of all tabIds across all groups MUST equal {total}
        4. Each tab ID can only appear in ONE group
        5. Create 3-7 meaningful groups based on content/topic similarity

        === OUTPUT FORMAT ===
        Respond with ONLY valid JSON (no markdown, no explanation):
        {{
          "groups": [
            {{ "name": "Short Group Name", "tabIds": [id1, id2, ...] }}
          ]
        }}

        Group name examples: "Email & Chat", "Development", "Research", "Entertainment", "Shopping", "News", "Social Media", "Work Tools"

        IMPORTANT: Double-check that ALL {total} tab IDs are included in your response!""").format(
            total=total, tab_ids=tab_ids
        )
    )


def _page_context(active_tab_content: Optional[str]) -> str:
    text = (active_tab_content or "").strip()
    if len(text) <= CHAT_PAGE_CONTEXT_MIN:
        return ""
    return (
        "\nActive Tab Content (reference this if the user asks about the current page):\n"
        f"{text[:CHAT_PAGE_CONTEXT_LIMIT]}\n[Content Truncated]\n"
    )


def build_chat_system_prompt(
    tabs: Sequence[Tab], active_tab_content: Optional[str] = None
) -> str:
    """System prompt for free-form chat about the open tabs."""
    tab_list = "\n".join(
        f'{i}. [ID:{t.id}] "{t.title}" - {sanitize_url(t.url)}'
        for i, t in enumerate(tabs, 1)
    )
    return textwrap.dedent("""\
        You are tabwise, an AI assistant for browser tab management.

        Current Context:
        - Total tabs: {total}
        - Tabs:
        {tab_list}
        {page}
        You can help users with:
        1. Sorting tabs by various criteria (domain, topic, date, etc.)
        2. Grouping tabs intelligently
        3. Finding duplicate tabs
        4. Answering questions about their tabs
        5. Closing specific tabs
        6. Summarizing what they're researching

        When an action is needed, respond with JSON in this format:
        {{
          "message": "Human-readable response",
          "action": {{
            "type": "sort|group|close|highlight|none",
            "payload": [tabIds] or {{"groups": [...]}}
          }}
        }}

        Use Markdown formatting for the "message" field.
        Always be helpful, concise, and accurate. Output valid JSON only.""").format(
        total=len(tabs), tab_list=tab_list, page=_page_context(active_tab_content)
    )


def parse_chat_response(raw_text: str) -> ChatResponse:
    """
    Decode a chat reply.  Anything that is not the expected JSON document is
    returned verbatim as the message with no action.
    """
    fallback = ChatResponse(message=raw_text.strip())
    try:
        parsed = json.loads(extract_json_block(raw_text))
    except json.JSONDecodeError:
        _LOG.debug("Chat reply is not JSON, using raw text")
        return fallback

    if not isinstance(parsed, dict) or not parsed.get("message"):
        return fallback

    action = ChatAction()
    raw_action = parsed.get("action")
    if isinstance(raw_action, dict):
        try:
            action_type = ChatActionType(str(raw_action.get("type") or "none").lower())
        except ValueError:
            action_type = ChatActionType.NONE
        action = ChatAction(type=action_type, payload=raw_action.get("payload"))

    return ChatResponse(message=str(parsed["message"]), action=action)
