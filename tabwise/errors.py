"""
tabwise.errors
--------------

Exception taxonomy.

Pre-flight errors (provider, validator, configuration) abort an operation
before any host mutation.  Once execution starts, per-item host failures are
logged and skipped by the executor and never surface here; only a failure
outside that tolerance becomes ``DistributionFailed``.
"""

from __future__ import annotations


class TabwiseError(Exception):
    """Base class for every error raised by tabwise."""


class MalformedResponse(TabwiseError):
    """The model reply could not be decoded into a grouping."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text[:500]


class ProviderError(TabwiseError):
    """A provider call failed; the message is meant for the end user."""

    retryable = False

    def __init__(
        self, message: str, provider: str = "", status: int | None = None
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderAuthError(ProviderError):
    """Invalid API key or no access to the model (401/403)."""


class ProviderQuotaError(ProviderError):
    """Insufficient credits or quota (402)."""


class ProviderRateLimited(ProviderError):
    """Too many requests (429)."""

    retryable = True


class ProviderUnavailable(ProviderError):
    """Server-side failure (5xx) or the provider could not be reached."""

    retryable = True


class ProviderRequestError(ProviderError):
    """Any other client error: bad request, unknown model."""


class ProviderResponseError(ProviderError):
    """HTTP success carrying an embedded provider error object."""


class EmptyResponse(ProviderError):
    """HTTP success without any message content."""


class DistributionFailed(TabwiseError):
    """A top-level step of organize/distribute/consolidate failed."""


class NotConfiguredError(TabwiseError):
    """No provider or API key configured."""


class NoTabsError(TabwiseError):
    """There are no tabs to organize."""


class OrganizeInProgress(TabwiseError):
    """Another organize operation is still running."""
