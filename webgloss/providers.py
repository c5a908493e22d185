"""Translation provider abstractions."""

from __future__ import annotations

import asyncio
import json
import sys
from abc import ABC, abstractmethod
from typing import Any, Optional

import openai
import requests

from .errors import (
    ApiError,
    NetworkError,
    ParseError,
    TranslationProviderConfigurationError,
)
from .structures import DEFAULT_DELIMITER, Configuration

GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:generateContent?key={api_key}"
)

INVALID_KEY_HINT = (
    "This often means the API key is invalid or the selected model doesn't "
    "support the request. Please verify your key and model."
)
QUOTA_HINT = "This means you have exceeded your API request quota."
GENERIC_HINT = "The API returned a non-200 status."
NO_TRANSLATION_MESSAGE = "The API response did not contain a valid translation."


def status_hint(status: int) -> str:
    """Human-readable explanation for a failed HTTP status."""

    if status in {400, 401, 403}:
        return INVALID_KEY_HINT
    if status == 429:
        return QUOTA_HINT
    return GENERIC_HINT


def build_prompt(text: str, delimiter: str = DEFAULT_DELIMITER) -> str:
    """Instruction prompt asking for a delimiter-preserving English translation."""

    return (
        "You are an expert translation service. Your task is to translate a batch "
        "of text segments from their original language into English.\n\n"
        "**Instructions:**\n"
        f'1. The input text contains multiple segments separated by "{delimiter}".\n'
        "2. Translate EACH segment into English.\n"
        "3. If a segment is already in English, or is a proper noun, brand name, "
        "or technical term, keep it as is.\n"
        f'4. Your output MUST preserve the "{delimiter}" separator between the '
        "translated segments. The number of separators in your output must "
        "exactly match the input.\n"
        "5. Do NOT add any extra text, explanations, or introductions. Provide "
        "only the translated text with the separators.\n\n"
        "**Example:**\n"
        f'Input: "Bonjour{delimiter}Welt{delimiter}Hello"\n'
        f'Output: "Hello{delimiter}World{delimiter}Hello"\n\n'
        "**Text to Translate:**\n"
        "---\n"
        f"{text}\n"
        "---"
    )


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "base"
    requires_api_key = True

    def __init__(self, *, debug: bool = False) -> None:
        self.debug = debug

    @abstractmethod
    async def translate(self, payload: str, config: Configuration) -> str:
        """Translate ``payload`` with a single request and return the text."""

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        print(f"[webgloss][provider-debug] {label}:\n{message}", file=sys.stderr)


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for dry runs)."""

    name = "echo"
    requires_api_key = False

    async def translate(self, payload: str, config: Configuration) -> str:
        return payload


class GeminiTranslationProvider(TranslationProvider):
    """Translation provider that calls the Gemini generateContent endpoint."""

    name = "gemini"

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        debug: bool = False,
    ) -> None:
        super().__init__(debug=debug)
        self.session = session or requests.Session()

    async def translate(self, payload: str, config: Configuration) -> str:
        prompt = build_prompt(payload, config.delimiter)
        self._log_debug("provider.request.model", config.model)
        self._log_debug("provider.request.prompt", prompt)

        response = await asyncio.to_thread(self._post, prompt, config)

        self._log_debug(
            "provider.response.status",
            f"{response.status_code} {response.reason or ''}".strip(),
        )
        self._log_debug("provider.response.body", response.text)
        return self._extract_translation(response)

    def _post(self, prompt: str, config: Configuration) -> requests.Response:
        url = GEMINI_URL_TEMPLATE.format(model=config.model, api_key=config.api_key)
        try:
            return self.session.post(
                url,
                headers={"Content-Type": "application/json"},
                json={"contents": [{"parts": [{"text": prompt}]}]},
            )
        except requests.RequestException as exc:
            raise NetworkError(
                "A network error occurred. Check your internet connection and "
                "that generativelanguage.googleapis.com is reachable."
            ) from exc

    def _extract_translation(self, response: requests.Response) -> str:
        status = response.status_code
        if status != 200:
            raise ApiError(
                response.reason or f"HTTP {status}",
                status=status,
                hint=status_hint(status),
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ParseError(
                "Failed to parse API response. The server did not return valid JSON."
            ) from exc

        text = _candidate_text(data)
        if text:
            return text.strip()

        error = data.get("error") if isinstance(data, dict) else None
        message = error.get("message") if isinstance(error, dict) else None
        raise ApiError(message or NO_TRANSLATION_MESSAGE, status=status)


def _candidate_text(data: Any) -> Optional[str]:
    """Return ``candidates[0].content.parts[0].text`` when present."""

    if not isinstance(data, dict):
        return None
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    def __init__(self, *, client: Any = None, debug: bool = False) -> None:
        super().__init__(debug=debug)
        self._client = client

    async def translate(self, payload: str, config: Configuration) -> str:
        prompt = build_prompt(payload, config.delimiter)
        self._log_debug("provider.request.model", config.model)
        self._log_debug("provider.request.prompt", prompt)

        if self._client is not None:
            content = await self._complete(self._client, prompt, config)
        else:
            # One request per batch: no SDK retries and no client timeout.
            async with openai.AsyncOpenAI(
                api_key=config.api_key, max_retries=0, timeout=None
            ) as client:
                content = await self._complete(client, prompt, config)
        self._log_debug("provider.response.content", content)

        if not content:
            raise ApiError(NO_TRANSLATION_MESSAGE)
        return content.strip()

    async def _complete(
        self, client: Any, prompt: str, config: Configuration
    ) -> Optional[str]:
        try:
            response = await client.chat.completions.create(
                model=config.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIConnectionError as exc:
            raise NetworkError(
                "A network error occurred. Check your internet connection."
            ) from exc
        except openai.APIStatusError as exc:
            raise ApiError(
                exc.message,
                status=exc.status_code,
                hint=status_hint(exc.status_code),
            ) from exc

        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None)
            if content:
                return content
        return None


def build_provider(
    name: str | None,
    *,
    debug: bool = False,
    session: Optional[requests.Session] = None,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or "gemini").strip().lower()
    if normalized in {"gemini", "google", "default"}:
        return GeminiTranslationProvider(session=session, debug=debug)
    if normalized in {"openai", "gpt"}:
        return OpenAITranslationProvider(debug=debug)
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider(debug=debug)
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
