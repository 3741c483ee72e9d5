"""
tabwise.providers
-----------------

Map each ProviderKind → adapter implementing the ``ProviderAdapter``
capability.  Prompt building and reply parsing live in ``tabwise.prompts``
and ``tabwise.validator`` and are shared by every variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from tabwise.constants import DEFAULT_MODELS, ProviderKind
from tabwise.models import ChatContext, ChatResponse, Tab, TabGroup

from .chat_completions import ENDPOINTS, ChatCompletionsAdapter, Endpoint
from .gemini import GeminiAdapter

__all__ = [
    "ProviderAdapter",
    "ProviderConfig",
    "create_adapter",
    "ChatCompletionsAdapter",
    "GeminiAdapter",
    "Endpoint",
]


class ProviderAdapter(Protocol):
    """What the organizer needs from a model provider."""

    async def validate_key(self, api_key: Optional[str] = None) -> bool: ...

    async def complete_grouping(
        self, tabs: Sequence[Tab], prompt: Optional[str] = None
    ) -> str: ...

    async def group_tabs(
        self, tabs: Sequence[Tab], prompt: Optional[str] = None
    ) -> list[TabGroup]: ...

    async def chat(self, context: ChatContext, user_message: str) -> ChatResponse: ...


@dataclass(slots=True)
class ProviderConfig:
    """Tagged provider selection."""

    provider: ProviderKind
    api_key: str
    model: str = ""

    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider]


# --------------------------------------------------------------------------- #
# Registry                                                                    #
# --------------------------------------------------------------------------- #


def _chat_completions_factory(kind: ProviderKind) -> Callable[[ProviderConfig], ProviderAdapter]:
    def _build(cfg: ProviderConfig) -> ProviderAdapter:
        return ChatCompletionsAdapter(ENDPOINTS[kind], cfg.api_key, cfg.resolved_model())

    return _build


_FACTORIES: dict[ProviderKind, Callable[[ProviderConfig], ProviderAdapter]] = {
    ProviderKind.OPENAI: _chat_completions_factory(ProviderKind.OPENAI),
    ProviderKind.DEEPSEEK: _chat_completions_factory(ProviderKind.DEEPSEEK),
    ProviderKind.OPENROUTER: _chat_completions_factory(ProviderKind.OPENROUTER),
    ProviderKind.GEMINI: lambda cfg: GeminiAdapter(cfg.api_key, cfg.resolved_model()),
}


def create_adapter(config: ProviderConfig) -> ProviderAdapter:
    """
    Return the adapter for ``config.provider``.

    Raises
    ------
    ValueError
        If the provider is unknown / not registered.
    """
    try:
        factory = _FACTORIES[config.provider]
    except KeyError as exc:
        raise ValueError(f"Unknown provider: {config.provider}") from exc
    return factory(config)
