"""
Tests for prompt construction and chat-reply parsing.
"""

import pytest

from tabwise.models import ChatActionType, Tab
from tabwise.prompts import (
    build_chat_system_prompt,
    build_grouping_prompt,
    parse_chat_response,
    sanitize_tabs,
    sanitize_url,
)


@pytest.mark.unit
def test_sanitize_url_keeps_origin_and_path():
    assert (
        sanitize_url("https://example.com/docs/page?token=secret#frag")
        == "https://example.com/docs/page"
    )


@pytest.mark.unit
def test_sanitize_url_truncates_long_values():
    long_path = "https://example.com/" + "a" * 200
    assert len(sanitize_url(long_path)) == 70
    assert sanitize_url(long_path).endswith("...")

    assert len(sanitize_url("not a url " * 20)) == 50


@pytest.mark.unit
def test_sanitize_tabs_shortens_titles():
    tab = Tab(id=1, title="T" * 80, url="https://example.com/x?q=1", window_id=5)
    (short,) = sanitize_tabs([tab])

    assert short.title == "T" * 47 + "..."
    assert short.url == "https://example.com/x"
    assert short.window_id == 5
    # original is untouched
    assert tab.title == "T" * 80


@pytest.mark.unit
def test_grouping_prompt_lists_every_id():
    tabs = [
        Tab(id=11, title="Inbox", url="https://mail.example.com/"),
        Tab(id=12, title="PR review", url="https://git.example.com/pr/1"),
    ]
    prompt = build_grouping_prompt(tabs)

    assert "ALL 2 browser tabs" in prompt
    assert '1. [ID:11] "Inbox" - https://mail.example.com/' in prompt
    assert "11, 12" in prompt
    assert '"tabIds"' in prompt
    assert "USER INSTRUCTION" not in prompt


@pytest.mark.unit
def test_grouping_prompt_includes_user_instruction():
    tabs = [Tab(id=1, title="A", url="https://a.example.com/")]
    prompt = build_grouping_prompt(tabs, "  group by project  ")

    assert "=== USER INSTRUCTION ===\ngroup by project\n" in prompt
    assert prompt.index("USER INSTRUCTION") < prompt.index("CRITICAL REQUIREMENTS")


@pytest.mark.unit
def test_chat_system_prompt_mentions_tab_count():
    tabs = [Tab(id=i, title=f"T{i}", url="https://example.com/") for i in range(3)]
    prompt = build_chat_system_prompt(tabs)

    assert "Total tabs: 3" in prompt
    assert "[ID:2]" in prompt
    assert "Active Tab Content" not in prompt


@pytest.mark.unit
def test_chat_system_prompt_quotes_page_text():
    tabs = [Tab(id=1, title="Article", url="https://example.com/")]
    page = "Lorem ipsum dolor sit amet. " * 200

    prompt = build_chat_system_prompt(tabs, page)

    assert "Active Tab Content" in prompt
    assert page.strip()[:3000] in prompt
    assert page.strip()[:3001] not in prompt
    # short snippets are not worth the tokens
    assert "Active Tab Content" not in build_chat_system_prompt(tabs, "Loading...")


@pytest.mark.unit
def test_parse_chat_response_with_action():
    raw = (
        "```json\n"
        '{"message": "Closing duplicates", "action": {"type": "CLOSE", "payload": [3, 4]}}'
        "\n```"
    )
    response = parse_chat_response(raw)

    assert response.message == "Closing duplicates"
    assert response.action.type is ChatActionType.CLOSE
    assert response.action.payload == [3, 4]


@pytest.mark.unit
def test_parse_chat_response_plain_text_falls_back():
    response = parse_chat_response("  You have three news tabs.  ")

    assert response.message == "You have three news tabs."
    assert response.action.type is ChatActionType.NONE


@pytest.mark.unit
def test_parse_chat_response_unknown_action_becomes_none():
    response = parse_chat_response('{"message": "ok", "action": {"type": "explode"}}')

    assert response.message == "ok"
    assert response.action.type is ChatActionType.NONE
