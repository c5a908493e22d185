"""Persistent key-value settings for webgloss.

Stores the API key and the selected model in a JSON file in the user's home
directory. The file is read on every lookup so changes made by another
process are seen on the next request.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .errors import MissingApiKeyError, SettingsStoreError
from .structures import AVAILABLE_MODELS

DEFAULT_SETTINGS_PATH = Path.home() / ".webgloss.json"

API_KEY = "apiKey"
MODEL_KEY = "model"

KeyPrompt = Callable[[], Optional[str]]


class SettingsStore:
    """JSON-file backed key-value store."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or DEFAULT_SETTINGS_PATH

    def load(self) -> Dict[str, Any]:
        """Return all stored values; unreadable files read as empty."""

        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        value = self.load().get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        data = self.load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self.load()
        if key in data:
            del data[key]
            self._save(data)

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            serialized = json.dumps(data, indent=2, sort_keys=True)
            self.path.write_text(serialized, encoding="utf-8")
        except OSError as exc:
            raise SettingsStoreError(
                f"Could not save settings to {self.path}: {exc}"
            ) from exc


def ensure_api_key(store: SettingsStore, prompt: KeyPrompt) -> str:
    """Return the stored key, asking for one when none is saved yet."""

    api_key = store.get(API_KEY)
    if api_key:
        return api_key
    entered = (prompt() or "").strip()
    if not entered:
        raise MissingApiKeyError("Translation cancelled. API Key is required.")
    store.set(API_KEY, entered)
    return entered


def reset_api_key(store: SettingsStore, prompt: KeyPrompt) -> str:
    """Forget the stored key and ask for a new one."""

    store.delete(API_KEY)
    return ensure_api_key(store, prompt)


def choose_model(store: SettingsStore, model: str) -> str:
    """Validate and persist the translation model."""

    candidate = model.strip()
    if candidate not in AVAILABLE_MODELS:
        raise ValueError(
            f"Unknown model '{model}'. Choose one of: {', '.join(AVAILABLE_MODELS)}."
        )
    store.set(MODEL_KEY, candidate)
    return candidate
