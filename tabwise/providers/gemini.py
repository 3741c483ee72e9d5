"""
tabwise.providers.gemini
------------------------

Gemini adapter built on ``google-generativeai``.

The SDK is synchronous, so every call runs in a worker thread.  API errors
raised by the SDK carry the HTTP status in ``code`` and go through the same
status mapping and retry loop as the HTTP adapters.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ..constants import (
    CHAT_MAX_TOKENS,
    CHAT_TEMPERATURE,
    GROUPING_MAX_TOKENS,
    GROUPING_TEMPERATURE,
)
from ..errors import EmptyResponse, ProviderAuthError, ProviderUnavailable
from ..models import ChatContext, ChatResponse, ChatRole, Tab, TabGroup
from ..prompts import (
    build_chat_system_prompt,
    build_grouping_prompt,
    parse_chat_response,
    sanitize_tabs,
)
from ..validator import parse_grouping_response
from .retry import call_with_retry, raise_for_status

_LOG = logging.getLogger(__name__)

_NAME = "Gemini"
_CHAT_ACK = "I understand. I'm ready to help you manage your browser tabs."


def _response_text(response: Any) -> str:
    """Robustly pull the reply text out of a ``GenerateContentResponse``."""
    try:
        text = response.text
        if text:
            return text.strip()
    except (ValueError, AttributeError):
        # ``.text`` raises when the candidate was blocked or has no parts
        pass

    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", "")
            if text:
                return text.strip()
    return ""


class GeminiAdapter:
    """``ProviderAdapter`` for Google Gemini."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._sleep = sleep

    def _build_model(self, temperature: float, max_tokens: int) -> genai.GenerativeModel:
        genai.configure(api_key=self.api_key)
        return genai.GenerativeModel(
            model_name=self.model,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_tokens,
            },
        )

    async def _generate_once(
        self, contents: Any, temperature: float, max_tokens: int
    ) -> str:
        model = self._build_model(temperature, max_tokens)
        try:
            response = await asyncio.to_thread(model.generate_content, contents)
        except google_exceptions.GoogleAPICallError as exc:
            status = exc.code if isinstance(exc.code, int) else 500
            message = exc.message or str(exc)
            if status == 400 and "api key" in message.lower():
                raise ProviderAuthError(
                    f"{_NAME}: Invalid API key. Please check your {_NAME} API key.",
                    _NAME,
                    status,
                ) from exc
            raise_for_status(status, {"error": {"message": message}}, _NAME, self.model)
            raise
        except (google_exceptions.RetryError, ConnectionError, TimeoutError) as exc:
            raise ProviderUnavailable(
                f"Network error: Unable to reach {_NAME}. Check your internet "
                "connection.",
                _NAME,
            ) from exc

        text = _response_text(response)
        if not text:
            raise EmptyResponse(f"No response from {_NAME}", _NAME)
        return text

    async def _generate(self, contents: Any, temperature: float, max_tokens: int) -> str:
        return await call_with_retry(
            lambda: self._generate_once(contents, temperature, max_tokens),
            sleep=self._sleep,
        )

    # ---------------- ProviderAdapter ---------------- #

    async def validate_key(self, api_key: Optional[str] = None) -> bool:
        """True when the key can list models.  Never raises."""
        genai.configure(api_key=api_key or self.api_key)
        try:
            await asyncio.to_thread(lambda: next(iter(genai.list_models()), None))
        except Exception as exc:
            _LOG.debug("Gemini key validation failed: %s", exc)
            return False
        return True

    async def complete_grouping(
        self, tabs: Sequence[Tab], prompt: Optional[str] = None
    ) -> str:
        grouping_prompt = build_grouping_prompt(sanitize_tabs(tabs), prompt)
        return await self._generate(
            grouping_prompt, GROUPING_TEMPERATURE, GROUPING_MAX_TOKENS
        )

    async def group_tabs(
        self, tabs: Sequence[Tab], prompt: Optional[str] = None
    ) -> list[TabGroup]:
        raw = await self.complete_grouping(tabs, prompt)
        return parse_grouping_response(raw, [t.id for t in tabs])

    async def chat(self, context: ChatContext, user_message: str) -> ChatResponse:
        system = build_chat_system_prompt(context.tabs, context.active_tab_content)
        contents: list[dict[str, Any]] = [
            {"role": "user", "parts": [system]},
            {"role": "model", "parts": [_CHAT_ACK]},
        ]
        for msg in context.conversation_history:
            role = "model" if msg.role is ChatRole.ASSISTANT else "user"
            contents.append({"role": role, "parts": [msg.content]})
        contents.append({"role": "user", "parts": [user_message]})

        raw = await self._generate(contents, CHAT_TEMPERATURE, CHAT_MAX_TOKENS)
        return parse_chat_response(raw)
