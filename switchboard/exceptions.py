"""
Custom exception hierarchy for the Switchboard routing layer.

Structured error handling with clear categories:
- Configuration errors (caught at startup)
- Provider resolution errors (no backend can serve a request)
- Provider HTTP errors (raised by the REST-based adapters)
- Telemetry errors (never leave the telemetry task)

Errors raised by SDK-backed adapters (anthropic, openai) are NOT wrapped;
the router propagates them to the caller exactly as the adapter raised them.

Usage:
    from switchboard.exceptions import NoProviderAvailableError

    try:
        response = await router.route(request)
    except NoProviderAvailableError:
        ...
"""

from __future__ import annotations

from typing import Optional


class SwitchboardError(Exception):
    """
    Base exception for all Switchboard errors.

    All custom exceptions inherit from this, so you can catch
    `SwitchboardError` to handle any routing-layer error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Configuration Errors ──────────────────────────────────────────


class RouterConfigurationError(SwitchboardError):
    """
    Raised when the router configuration (YAML, overrides or env) is invalid.

    Examples:
    - Unknown keys or wrong types in the YAML file
    - Empty provider names in FALLBACK_PROVIDERS
    - Non-positive token budget
    """

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.config_path = config_path


# ── Routing Errors ────────────────────────────────────────────────


class NoProviderAvailableError(SwitchboardError):
    """
    Raised when the resolved provider is not registered and no fallback
    candidate exists, or every candidate's circuit is open.
    """

    def __init__(
        self,
        message: str = "No LLM provider available",
        *,
        requested_provider: Optional[str] = None,
        registered: Optional[list[str]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.requested_provider = requested_provider
        self.registered = registered or []


# ── Provider Errors ───────────────────────────────────────────────


class ProviderError(SwitchboardError):
    """
    Raised by the HTTP-based adapters (Google, Ollama) when the backend
    returns a non-2xx response.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.provider = provider
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """True for rate limits and server-side failures."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or 500 <= self.status_code < 600


# ── Telemetry Errors ──────────────────────────────────────────────


class TelemetryError(SwitchboardError):
    """
    Raised when the state service rejects a usage record.

    Only ever raised and caught inside the telemetry task; callers of the
    router never see it.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.status_code = status_code
