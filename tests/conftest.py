from types import SimpleNamespace
from typing import Dict, List

import pytest

from webgloss.configuration import SettingsProvider
from webgloss.providers import TranslationProvider
from webgloss.settings_store import SettingsStore
from webgloss.structures import NodeRef, TextUnit


def _settings(**overrides) -> SimpleNamespace:
    values = {
        "LLM_PROVIDER": "gemini",
        "GEMINI_API_KEY": None,
        "OPENAI_API_KEY": None,
        "OPENAI_MODEL": "gpt-5-mini",
        "WEBGLOSS_MODEL": "gemini-2.5-flash",
        "WEBGLOSS_BATCH_LIMIT": 15000,
        "WEBGLOSS_DELIMITER": "|||---|||",
        "WEBGLOSS_SETTINGS_PATH": None,
        "WEBGLOSS_DEBUG_PROVIDER": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class ScriptedProvider(TranslationProvider):
    """Returns queued responses and records every request."""

    name = "scripted"

    def __init__(self, responses) -> None:
        super().__init__()
        self.responses = list(responses)
        self.payloads: List[str] = []
        self.configs = []

    async def translate(self, payload, config):
        self.payloads.append(payload)
        self.configs.append(config)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(payload)
        return response


@pytest.fixture
def make_settings():
    return _settings


@pytest.fixture
def store(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def make_settings_provider(store):
    def _factory(*, api_key="test-key", batch_limit=None, provider=None, **overrides):
        if api_key:
            store.set("apiKey", api_key)
        return SettingsProvider(
            settings=_settings(**overrides),
            store=store,
            provider=provider,
            batch_limit=batch_limit,
            debug=False,
        )

    return _factory


@pytest.fixture
def scripted_provider():
    return ScriptedProvider


@pytest.fixture
def make_units():
    """Build text units whose owners write into a shared dict."""

    def _factory(texts):
        values: Dict[int, str] = dict(enumerate(texts))
        units = []
        for position, text in enumerate(texts):

            def _getter(index=position) -> str:
                return values[index]

            def _setter(new_text: str, index=position) -> None:
                values[index] = new_text

            units.append(
                TextUnit(
                    unit_id=f"node{position}",
                    original_text=text,
                    owner=NodeRef(_getter, _setter),
                    position=position,
                )
            )
        return units, values

    return _factory
