"""Error definitions for the webgloss page translator."""

from __future__ import annotations

from typing import Optional


class WebglossError(Exception):
    """Base exception for all custom errors."""


class TranslationError(WebglossError):
    """Raised when a translation request fails. Terminal for the current run."""


class NetworkError(TranslationError):
    """Raised when the request never produced a response."""


class ApiError(TranslationError):
    """Raised for non-success statuses or error-bearing response bodies."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status = status
        self.hint = hint
        text = f"API Error: {message}"
        if hint:
            text = f"{text}. {hint}"
        super().__init__(text)


class ParseError(TranslationError):
    """Raised when a success response body is not valid JSON."""


class PreflightError(WebglossError):
    """Raised when an action cannot start. No request has been sent."""


class MissingApiKeyError(PreflightError):
    """Raised when no API key is available."""


class EmptySelectionError(PreflightError):
    """Raised when the selection holds no text."""


class NoTranslatableTextError(PreflightError):
    """Raised when the page yields no eligible text."""


class PageLoadError(WebglossError):
    """Raised when an HTML page cannot be read or fetched."""


class TranslationProviderConfigurationError(WebglossError):
    """Raised when the translation provider is misconfigured."""


class SettingsStoreError(WebglossError):
    """Raised when the settings file cannot be written."""


class RevokedNodeError(WebglossError):
    """Raised when writing through a node reference that was revoked."""


class OverwriteRefusedError(WebglossError):
    """Raised when attempting to overwrite an output without consent."""
