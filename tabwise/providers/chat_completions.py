"""
tabwise.providers.chat_completions
----------------------------------

Adapter for every provider speaking the OpenAI-compatible
``/chat/completions`` protocol (OpenAI, DeepSeek, OpenRouter).  Only the
endpoint differs between them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

import aiohttp

from ..constants import (
    CHAT_MAX_TOKENS,
    CHAT_TEMPERATURE,
    GROUPING_MAX_TOKENS,
    GROUPING_TEMPERATURE,
    OPENROUTER_FALLBACK_MODELS,
    PROVIDER_BASE_URLS,
    PROVIDER_REQUEST_TIMEOUT,
    ProviderKind,
)
from ..errors import EmptyResponse, ProviderResponseError, ProviderUnavailable
from ..models import ChatContext, ChatResponse, ChatRole, Tab, TabGroup
from ..prompts import (
    GROUPING_SYSTEM_PROMPT,
    build_chat_system_prompt,
    build_grouping_prompt,
    parse_chat_response,
    sanitize_tabs,
)
from ..validator import parse_grouping_response
from .retry import call_with_retry, extract_embedded_error, raise_for_status

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Where and how to reach one chat-completions provider."""

    name: str
    base_url: str
    extra_headers: dict[str, str] = field(default_factory=dict)
    # Suggested alternative shown when the provider reports 5xx.
    suggestion: str = ""


ENDPOINTS: dict[ProviderKind, Endpoint] = {
    ProviderKind.OPENAI: Endpoint("OpenAI", PROVIDER_BASE_URLS[ProviderKind.OPENAI]),
    ProviderKind.DEEPSEEK: Endpoint(
        "DeepSeek", PROVIDER_BASE_URLS[ProviderKind.DEEPSEEK]
    ),
    ProviderKind.OPENROUTER: Endpoint(
        "OpenRouter",
        PROVIDER_BASE_URLS[ProviderKind.OPENROUTER],
        extra_headers={
            "HTTP-Referer": "https://github.com/tabwise/tabwise",
            "X-Title": "tabwise",
        },
        suggestion=OPENROUTER_FALLBACK_MODELS[0],
    ),
}


class ChatCompletionsAdapter:
    """``ProviderAdapter`` over aiohttp for OpenAI-compatible APIs."""

    def __init__(
        self,
        endpoint: Endpoint,
        api_key: str,
        model: str,
        *,
        timeout: float = PROVIDER_REQUEST_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._sleep = sleep

    # ---------------- HTTP plumbing ---------------- #

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            **self.endpoint.extra_headers,
        }

    async def _post(self, path: str, payload: dict) -> tuple[int, Any]:
        """POST *payload* and return ``(status, decoded body)``."""
        url = f"{self.endpoint.base_url}{path}"
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(
                url, json=payload, headers=self._headers(self.api_key)
            ) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = {}
                return resp.status, body

    async def _get_status(self, path: str, api_key: str) -> int:
        url = f"{self.endpoint.base_url}{path}"
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.get(url, headers=self._headers(api_key)) as resp:
                return resp.status

    async def _request_once(self, payload: dict) -> str:
        name = self.endpoint.name
        try:
            status, body = await self._post("/chat/completions", payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderUnavailable(
                f"Network error: Unable to reach {name}. Check your internet "
                "connection.",
                name,
            ) from exc

        raise_for_status(
            status, body, name, self.model, suggestion=self.endpoint.suggestion
        )

        embedded = extract_embedded_error(body)
        if embedded:
            raise ProviderResponseError(f"{name}: {embedded}", name, status)

        text = _message_content(body)
        if not text:
            _LOG.error("[%s] Empty response: %s", name, body)
            raise EmptyResponse(
                f"{name} returned an empty response. The model may be overloaded.",
                name,
                status,
            )
        return text

    async def _complete(
        self, messages: list[dict[str, str]], temperature: float, max_tokens: int
    ) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return await call_with_retry(
            lambda: self._request_once(payload), sleep=self._sleep
        )

    # ---------------- ProviderAdapter ---------------- #

    async def validate_key(self, api_key: Optional[str] = None) -> bool:
        """True when ``GET /models`` accepts the key.  Never raises."""
        try:
            status = await self._get_status("/models", api_key or self.api_key)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            _LOG.debug("%s key validation failed: %s", self.endpoint.name, exc)
            return False
        return 200 <= status < 300

    async def complete_grouping(
        self, tabs: Sequence[Tab], prompt: Optional[str] = None
    ) -> str:
        grouping_prompt = build_grouping_prompt(sanitize_tabs(tabs), prompt)
        return await self._complete(
            [
                {"role": "system", "content": GROUPING_SYSTEM_PROMPT},
                {"role": "user", "content": grouping_prompt},
            ],
            GROUPING_TEMPERATURE,
            GROUPING_MAX_TOKENS,
        )

    async def group_tabs(
        self, tabs: Sequence[Tab], prompt: Optional[str] = None
    ) -> list[TabGroup]:
        raw = await self.complete_grouping(tabs, prompt)
        return parse_grouping_response(raw, [t.id for t in tabs])

    async def chat(self, context: ChatContext, user_message: str) -> ChatResponse:
        system = build_chat_system_prompt(context.tabs, context.active_tab_content)
        messages = [{"role": "system", "content": system}]
        for msg in context.conversation_history:
            role = "assistant" if msg.role is ChatRole.ASSISTANT else "user"
            messages.append({"role": role, "content": msg.content})
        messages.append({"role": "user", "content": user_message})

        raw = await self._complete(messages, CHAT_TEMPERATURE, CHAT_MAX_TOKENS)
        return parse_chat_response(raw)


def _message_content(body: Any) -> str:
    """``choices[0].message.content`` or an empty string."""
    if not isinstance(body, dict):
        return ""
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content.strip() if isinstance(content, str) else ""
