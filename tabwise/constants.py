"""
tabwise.constants
-----------------

Centralised constants shared across the tabwise code-base.
"""

from enum import Enum
from typing import Final
import os

# --------------------------------------------------------------------------- #
# LLM providers
# --------------------------------------------------------------------------- #


class ProviderKind(str, Enum):
    """Tagged configuration value selecting a provider adapter."""

    OPENAI = "openai"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"


# Base URL of every OpenAI-compatible chat-completions endpoint.
PROVIDER_BASE_URLS: Final[dict[ProviderKind, str]] = {
    ProviderKind.OPENAI: "https://api.openai.com/v1",
    ProviderKind.DEEPSEEK: "https://api.deepseek.com/v1",
    ProviderKind.OPENROUTER: "https://openrouter.ai/api/v1",
}

DEFAULT_MODELS: Final[dict[ProviderKind, str]] = {
    ProviderKind.OPENAI: "gpt-4o-mini",
    ProviderKind.GEMINI: "gemini-2.0-flash",
    ProviderKind.DEEPSEEK: "deepseek-chat",
    ProviderKind.OPENROUTER: "google/gemini-2.0-flash-exp:free",
}

# Suggested when an OpenRouter model is unavailable.
OPENROUTER_FALLBACK_MODELS: Final[tuple[str, ...]] = (
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-3.3-70b-instruct:free",
    "deepseek/deepseek-r1:free",
)

# Environment variable holding the API key of each provider.
PROVIDER_KEY_ENV: Final[dict[ProviderKind, str]] = {
    ProviderKind.OPENAI: "OPENAI_API_KEY",
    ProviderKind.GEMINI: "GEMINI_API_KEY",
    ProviderKind.DEEPSEEK: "DEEPSEEK_API_KEY",
    ProviderKind.OPENROUTER: "OPENROUTER_API_KEY",
}

# Generation parameters (grouping wants low temperature and room for long JSON).
GROUPING_TEMPERATURE: Final[float] = 0.2
GROUPING_MAX_TOKENS: Final[int] = 4096
CHAT_TEMPERATURE: Final[float] = 0.4
CHAT_MAX_TOKENS: Final[int] = 2048

# Per-request HTTP timeout (seconds).
PROVIDER_REQUEST_TIMEOUT: Final[float] = 60.0

# Retry count for transient provider failures (5xx, 429, transport errors).
MAX_RETRIES: Final[int] = 2
RETRY_BACKOFF_BASE: Final[int] = 2

# --------------------------------------------------------------------------- #
# Grouping & distribution
# --------------------------------------------------------------------------- #

# Name of the synthetic group that collects tabs the model forgot.
OTHER_GROUP_NAME: Final[str] = "Other"

# Used when the model returns a group without a usable name.
FALLBACK_GROUP_NAME: Final[str] = "Group"

# Chrome's "not in a group" value for Tab.groupId.
TAB_GROUP_ID_NONE: Final[int] = -1

# Capacity bounds for the per-window tab limit.
MIN_TABS_PER_WINDOW: Final[int] = 5
MAX_TABS_PER_WINDOW: Final[int] = 30
DEFAULT_MAX_TABS_PER_WINDOW: Final[int] = 15


class TabColor(str, Enum):
    """
    Named colours recognised by Chrome's Tab Groups API.
    Values must be the lowercase strings expected by CDP.
    """

    GREY = "grey"
    BLUE = "blue"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    CYAN = "cyan"
    ORANGE = "orange"


# Colour slot order; slot i uses COLOR_CYCLE[i % len(COLOR_CYCLE)].
COLOR_CYCLE: Final[tuple[TabColor, ...]] = (
    TabColor.BLUE,
    TabColor.RED,
    TabColor.YELLOW,
    TabColor.GREEN,
    TabColor.PINK,
    TabColor.PURPLE,
    TabColor.CYAN,
    TabColor.ORANGE,
    TabColor.GREY,
)

# --------------------------------------------------------------------------- #
# Environment variables
# --------------------------------------------------------------------------- #

PROVIDER_ENV: Final[str] = "TABWISE_PROVIDER"
MODEL_ENV: Final[str] = "TABWISE_MODEL"
API_KEY_ENV: Final[str] = "TABWISE_API_KEY"
MAX_TABS_ENV: Final[str] = "TABWISE_MAX_TABS_PER_WINDOW"
DOTENV_ENV: Final[str] = "TABWISE_DOTENV"

# --------------------------------------------------------------------------- #
# Chrome host
# --------------------------------------------------------------------------- #

# Default CDP remote-debugging port Chrome will listen on.
CHROME_REMOTE_PORT: Final[int] = int(os.environ.get("CHROME_REMOTE_PORT", "9222"))

# Names of Chrome processes we look for when determining whether Chrome is
# already running.  These are matched as simple substrings in the full
# command-line returned by ``ps``.
CHROME_PROCESS_NAMES: Final[tuple[str, ...]] = (
    "Google Chrome",
    "google-chrome",
    "chromium",
)

# URL schemes of targets that are never treated as user tabs.
INTERNAL_URL_PREFIXES: Final[tuple[str, ...]] = ("devtools://",)

# Page schemes whose text is never read for chat context.
RESTRICTED_PAGE_PREFIXES: Final[tuple[str, ...]] = (
    "chrome://",
    "edge://",
    "about:",
    "devtools://",
)

# Characters of active-page text read from the browser, and the share of it
# quoted in the chat prompt.
ACTIVE_TAB_CONTENT_LIMIT: Final[int] = 5000
CHAT_PAGE_CONTEXT_LIMIT: Final[int] = 3000
CHAT_PAGE_CONTEXT_MIN: Final[int] = 50
