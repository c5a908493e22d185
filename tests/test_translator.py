import asyncio
import json
from unittest.mock import MagicMock

import pytest

from webgloss.collector import HtmlPage, collect_text_units
from webgloss.errors import (
    ApiError,
    EmptySelectionError,
    MissingApiKeyError,
    NetworkError,
    NoTranslatableTextError,
)
from webgloss.providers import QUOTA_HINT, GeminiTranslationProvider
from webgloss.translator import PageTranslator, RunState, TextSelection

PAGE = "<html><body><p>Bonjour le monde</p>\n<p>Hallo Welt!</p></body></html>"


def _texts(page):
    return [unit.original_text for unit in collect_text_units(page.root)]


def _gemini_session(*responses):
    session = MagicMock()
    mocked = []
    for status, body in responses:
        response = MagicMock(status_code=status, reason="Too Many Requests", text=json.dumps(body))
        response.json.return_value = body
        mocked.append(response)
    session.post.side_effect = mocked
    return session


def test_single_batch_round_trip(make_settings_provider, scripted_provider) -> None:
    page = HtmlPage.from_string(PAGE)
    provider = scripted_provider(["Hello world|||---|||Hello World!"])
    translator = PageTranslator(settings_provider=make_settings_provider(), provider=provider)

    summary = asyncio.run(translator.run(page.root))

    assert provider.payloads == ["Bonjour le monde|||---|||Hallo Welt!"]
    assert _texts(page) == ["Hello world", "Hello World!"]
    assert summary.total_units == 2
    assert summary.translated_units == 2
    assert summary.total_batches == 1
    assert summary.warnings == []
    assert translator.state is RunState.IDLE


def test_gemini_page_run_sends_one_request_per_batch(make_settings_provider) -> None:
    page = HtmlPage.from_string(PAGE)
    session = _gemini_session(
        (200, {"candidates": [{"content": {"parts": [{"text": "Hello world|||---|||Hello World!"}]}}]})
    )
    translator = PageTranslator(
        settings_provider=make_settings_provider(),
        provider=GeminiTranslationProvider(session=session),
    )

    asyncio.run(translator.run(page.root))

    assert session.post.call_count == 1
    assert _texts(page) == ["Hello world", "Hello World!"]


def test_oversized_unit_is_sent_alone(make_settings_provider, scripted_provider) -> None:
    long_text = "Ein sehr langer Absatz " * 5
    page = HtmlPage.from_string(f"<body><p>Kurzer Text</p><p>{long_text}</p></body>")
    provider = scripted_provider([lambda payload: payload.upper()] * 2)
    translator = PageTranslator(
        settings_provider=make_settings_provider(batch_limit=40),
        provider=provider,
    )

    summary = asyncio.run(translator.run(page.root))

    assert provider.payloads == ["Kurzer Text", long_text]
    assert summary.total_batches == 2
    assert _texts(page) == ["KURZER TEXT", long_text.upper().strip()]


def test_quota_error_aborts_run(make_settings_provider) -> None:
    page = HtmlPage.from_string(PAGE)
    session = _gemini_session((429, {"error": {"message": "quota"}}))
    translator = PageTranslator(
        settings_provider=make_settings_provider(batch_limit=12),
        provider=GeminiTranslationProvider(session=session),
    )

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(translator.run(page.root))

    assert excinfo.value.status == 429
    assert QUOTA_HINT in str(excinfo.value)
    assert session.post.call_count == 1
    assert _texts(page) == ["Bonjour le monde", "Hallo Welt!"]
    assert translator.state is RunState.IDLE


def test_error_body_surfaces_upstream_message(make_settings_provider) -> None:
    page = HtmlPage.from_string(PAGE)
    session = _gemini_session((200, {"error": {"message": "invalid request"}}))
    translator = PageTranslator(
        settings_provider=make_settings_provider(),
        provider=GeminiTranslationProvider(session=session),
    )

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(translator.run(page.root))

    assert excinfo.value.message == "invalid request"


def test_failure_leaves_later_batches_untouched(make_settings_provider, scripted_provider) -> None:
    page = HtmlPage.from_string(
        "<body><p>Erster Absatz</p><p>Zweiter Absatz</p><p>Dritter Absatz</p></body>"
    )
    provider = scripted_provider(["First paragraph", NetworkError("offline"), "unused"])
    translator = PageTranslator(
        settings_provider=make_settings_provider(batch_limit=15),
        provider=provider,
    )

    with pytest.raises(NetworkError):
        asyncio.run(translator.run(page.root))

    assert len(provider.payloads) == 2
    assert _texts(page) == ["First paragraph", "Zweiter Absatz", "Dritter Absatz"]


def test_mismatch_is_a_warning_and_run_continues(make_settings_provider, scripted_provider) -> None:
    page = HtmlPage.from_string(
        "<body><p>Erster Absatz</p><p>Zweiter Absatz</p><p>Dritter Absatz hier</p></body>"
    )
    provider = scripted_provider(["First and second paragraph", "Third paragraph here"])
    translator = PageTranslator(
        settings_provider=make_settings_provider(batch_limit=30),
        provider=provider,
    )

    summary = asyncio.run(translator.run(page.root))

    assert _texts(page) == ["First and second paragraph", "Zweiter Absatz", "Third paragraph here"]
    assert summary.mismatched_batches == 1
    assert summary.total_batches == 2


def test_progress_is_reported_after_each_batch(make_settings_provider, scripted_provider) -> None:
    page = HtmlPage.from_string(
        "<body><p>Erster Absatz</p><p>Zweiter Absatz</p><p>Dritter Absatz</p><p>Vierter Absatz</p></body>"
    )
    provider = scripted_provider([lambda payload: payload] * 4)
    fractions = []
    translator = PageTranslator(
        settings_provider=make_settings_provider(batch_limit=15),
        provider=provider,
        progress=fractions.append,
    )

    asyncio.run(translator.run(page.root))

    assert fractions == [0.0, 0.25, 0.5, 0.75, 1.0]


def test_configuration_is_reread_before_each_batch(
    make_settings_provider, scripted_provider, store
) -> None:
    page = HtmlPage.from_string("<body><p>Erster Absatz</p><p>Zweiter Absatz</p></body>")

    def switch_model(payload):
        store.set("model", "gemini-2.5-pro")
        store.set("apiKey", "rotated-key")
        return payload

    provider = scripted_provider([switch_model, lambda payload: payload])
    translator = PageTranslator(
        settings_provider=make_settings_provider(batch_limit=15),
        provider=provider,
    )

    summary = asyncio.run(translator.run(page.root))

    assert provider.configs[0].model == "gemini-2.5-flash"
    assert provider.configs[1].model == "gemini-2.5-pro"
    assert provider.configs[1].api_key == "rotated-key"
    assert summary.model == "gemini-2.5-pro"


def test_missing_key_aborts_before_any_request(make_settings_provider, scripted_provider) -> None:
    page = HtmlPage.from_string(PAGE)
    provider = scripted_provider([])
    translator = PageTranslator(
        settings_provider=make_settings_provider(api_key=None),
        provider=provider,
    )

    with pytest.raises(MissingApiKeyError):
        asyncio.run(translator.run(page.root))

    assert provider.payloads == []


def test_page_without_text_is_reported(make_settings_provider, scripted_provider) -> None:
    page = HtmlPage.from_string("<body><script>var x = 'nothing here';</script><p>Oui</p></body>")
    provider = scripted_provider([])
    translator = PageTranslator(settings_provider=make_settings_provider(), provider=provider)

    with pytest.raises(NoTranslatableTextError):
        asyncio.run(translator.run(page.root))

    assert provider.payloads == []
    assert translator.state is RunState.IDLE


def test_selection_is_translated_and_replaced(make_settings_provider, scripted_provider) -> None:
    provider = scripted_provider(["Good morning"])
    translator = PageTranslator(settings_provider=make_settings_provider(), provider=provider)
    selection = TextSelection(text="  Guten Morgen \n")

    result = asyncio.run(translator.translate_selection(selection))

    assert result == "Good morning"
    assert selection.replaced_with == "Good morning"
    assert provider.payloads == ["Guten Morgen"]


def test_empty_selection_is_rejected(make_settings_provider, scripted_provider) -> None:
    provider = scripted_provider([])
    translator = PageTranslator(settings_provider=make_settings_provider(), provider=provider)

    with pytest.raises(EmptySelectionError):
        asyncio.run(translator.translate_selection(TextSelection(text="   ")))

    assert provider.payloads == []


def test_selection_error_leaves_selection_unchanged(make_settings_provider, scripted_provider) -> None:
    provider = scripted_provider([ApiError("invalid request")])
    translator = PageTranslator(settings_provider=make_settings_provider(), provider=provider)
    selection = TextSelection(text="Guten Morgen")

    with pytest.raises(ApiError):
        asyncio.run(translator.translate_selection(selection))

    assert selection.replaced_with is None
