"""
tabwise.config
--------------

Runtime settings resolved from the environment (and ``.env``).

Settings are built explicitly by ``load_settings`` and handed to the
components that need them; nothing is cached at module level.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .constants import (
    API_KEY_ENV,
    DEFAULT_MAX_TABS_PER_WINDOW,
    DOTENV_ENV,
    MAX_TABS_ENV,
    MAX_TABS_PER_WINDOW,
    MIN_TABS_PER_WINDOW,
    MODEL_ENV,
    PROVIDER_ENV,
    PROVIDER_KEY_ENV,
    ProviderKind,
)
from .errors import NotConfiguredError
from .providers import ProviderConfig

_LOG = logging.getLogger(__name__)


def load_env_file() -> Optional[str]:
    """
    Load a ``.env`` file into ``os.environ`` without overriding variables
    that are already set.

    Resolution order: ``$TABWISE_DOTENV`` when it points at a file, then
    discovery upwards from the current working directory.
    """
    specific = os.environ.get(DOTENV_ENV)
    if specific and os.path.exists(specific):
        load_dotenv(specific)
        _LOG.debug("Loaded .env from %s: %s", DOTENV_ENV, specific)
        return specific

    discovered = find_dotenv(usecwd=True)
    if discovered:
        load_dotenv(discovered)
        _LOG.debug("Loaded .env via discovery: %s", discovered)
        return discovered

    _LOG.debug("No .env found (checked explicit and discovery).")
    return None


def clamp_max_tabs(value: object) -> int:
    """Clamp the per-window capacity into [5, 30]; junk falls back to 15."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        _LOG.warning(
            "Invalid max tabs per window %r, using %d", value, DEFAULT_MAX_TABS_PER_WINDOW
        )
        return DEFAULT_MAX_TABS_PER_WINDOW
    return max(MIN_TABS_PER_WINDOW, min(MAX_TABS_PER_WINDOW, number))


def parse_provider(raw: str) -> ProviderKind:
    try:
        return ProviderKind(raw.strip().lower())
    except ValueError as exc:
        raise NotConfiguredError(f"Unknown provider '{raw}'") from exc


@dataclass(slots=True)
class Settings:
    provider: Optional[ProviderKind] = None
    api_key: Optional[str] = None
    model: str = ""
    max_tabs_per_window: int = DEFAULT_MAX_TABS_PER_WINDOW

    def provider_config(self) -> ProviderConfig:
        """Return the provider selection or raise ``NotConfiguredError``."""
        if self.provider is None:
            raise NotConfiguredError(
                f"No AI provider configured. Set ${PROVIDER_ENV} "
                f"({', '.join(p.value for p in ProviderKind)})."
            )
        if not self.api_key:
            raise NotConfiguredError(
                f"No API key for {self.provider.value}. Set "
                f"${PROVIDER_KEY_ENV[self.provider]} or ${API_KEY_ENV}."
            )
        return ProviderConfig(self.provider, self.api_key, self.model)


def _detect_provider() -> Optional[ProviderKind]:
    """First provider whose key variable is set."""
    for kind, env_name in PROVIDER_KEY_ENV.items():
        if os.environ.get(env_name):
            return kind
    return None


def load_settings(
    *,
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    max_tabs_per_window: Optional[int] = None,
    use_dotenv: bool = True,
) -> Settings:
    """Build ``Settings`` from keyword overrides, then the environment."""
    if use_dotenv:
        try:
            load_env_file()
        except OSError as exc:
            _LOG.warning("Failed to load .env file: %s", exc)

    raw_provider = provider or os.environ.get(PROVIDER_ENV)
    kind = parse_provider(raw_provider) if raw_provider else _detect_provider()

    key = api_key
    if not key and kind is not None:
        key = os.environ.get(PROVIDER_KEY_ENV[kind]) or os.environ.get(API_KEY_ENV)

    raw_max = (
        max_tabs_per_window
        if max_tabs_per_window is not None
        else os.environ.get(MAX_TABS_ENV, DEFAULT_MAX_TABS_PER_WINDOW)
    )

    return Settings(
        provider=kind,
        api_key=key,
        model=model or os.environ.get(MODEL_ENV, ""),
        max_tabs_per_window=clamp_max_tabs(raw_max),
    )
