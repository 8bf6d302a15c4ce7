"""
Unit tests for the translation agents.

Note: These tests use mocked Gemini responses to avoid API costs.
"""

import json
import time

import pytest
from unittest.mock import MagicMock, patch

from config.settings import ProcessingConfig
from preprocessor.agents.translation import (
    CascadeTranslator,
    GeminiTranslator,
    NoopTranslator,
    TranslationError,
    Translator,
    build_translator,
    is_poor_adequacy,
)
from preprocessor.models.translation import TranslationItem, TranslationResult


class FakeTranslator(Translator):
    """Translator returning canned results (or raising) and recording calls."""

    def __init__(self, results=None, error=None):
        self.results = results or {}
        self.error = error
        self.calls = []

    def translate_batch(self, items, target_lang, deadline=None):
        self.calls.append([item.id for item in items])
        if self.error is not None:
            raise self.error
        return {
            item.id: self.results[item.id]
            for item in items
            if item.id in self.results
        }


def _result(item_id, translated, lang="fr"):
    return TranslationResult(id=item_id, lang=lang, translated=translated)


def _llm_response(items):
    return MagicMock(text=json.dumps({"items": items}))


@pytest.fixture
def mock_genai():
    with patch('preprocessor.agents.translation.genai') as mock:
        yield mock


@pytest.fixture
def items():
    return [
        TranslationItem(id="r1", text="Bonjour le monde"),
        TranslationItem(id="r2", text="Hola amigos"),
    ]


# GeminiTranslator

def test_gemini_empty_batch_makes_no_call(mock_genai):
    translator = GeminiTranslator(api_key="test-key")
    assert translator.translate_batch([], "en") == {}
    mock_genai.GenerativeModel.return_value.generate_content.assert_not_called()


def test_gemini_parses_results(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.return_value = _llm_response([
        {"id": "r1", "lang": "fr", "translated": "Hello world"},
        {"id": "r2", "lang": "es", "translated": "Hello friends"},
    ])

    translator = GeminiTranslator(api_key="test-key", model_name="gemini-1.5-flash")
    results = translator.translate_batch(items, "en")

    assert results["r1"] == TranslationResult(id="r1", lang="fr", translated="Hello world")
    assert results["r2"].translated == "Hello friends"

    prompt = mock_model.generate_content.call_args[0][0]
    payload = json.loads(prompt)
    assert payload["target"] == "en"
    assert payload["items"][0] == {"id": "r1", "text": "Bonjour le monde"}


def test_gemini_configures_json_mode(mock_genai):
    GeminiTranslator(api_key="test-key", model_name="gemini-1.5-pro", temperature=0.0)

    mock_genai.configure.assert_called_once_with(api_key="test-key")
    kwargs = mock_genai.GenerativeModel.call_args.kwargs
    assert kwargs["model_name"] == "gemini-1.5-pro"
    assert kwargs["generation_config"]["response_mime_type"] == "application/json"


def test_gemini_drops_unknown_and_invalid_items(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.return_value = _llm_response([
        {"id": "r1", "lang": "fr", "translated": "Hello world"},
        {"id": "zzz", "lang": "fr", "translated": "Not requested"},
        {"lang": "es", "translated": "No id"},
    ])

    results = GeminiTranslator(api_key="test-key").translate_batch(items, "en")
    assert set(results) == {"r1"}


def test_gemini_drops_items_with_non_string_fields(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.return_value = _llm_response([
        {"id": "r1", "lang": ["fr"], "translated": 123},
        {"id": "r2", "lang": "es", "translated": "Hello friends"},
    ])

    results = GeminiTranslator(api_key="test-key").translate_batch(items, "en")

    assert set(results) == {"r2"}
    assert isinstance(results["r2"].translated, str)


def test_translation_result_rejects_non_string_fields():
    with pytest.raises(ValueError):
        TranslationResult.from_dict({"id": "r1", "lang": "fr", "translated": 123})
    with pytest.raises(ValueError):
        TranslationResult.from_dict({"id": "r1", "lang": ["fr"], "translated": "Hi"})

    result = TranslationResult.from_dict({"id": "r1", "lang": None, "translated": None})
    assert result == TranslationResult(id="r1", lang="", translated="")


def test_gemini_empty_translation_allowed(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.return_value = _llm_response([
        {"id": "r1", "lang": "en", "translated": ""},
    ])

    results = GeminiTranslator(api_key="test-key").translate_batch(items[:1], "en")
    assert results["r1"].translated == ""
    assert results["r1"].lang == "en"


def test_gemini_retries_invalid_json(mock_genai, items):
    """Test retry logic on JSON parsing errors."""
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.side_effect = [
        MagicMock(text="invalid json{{{"),
        _llm_response([{"id": "r1", "lang": "fr", "translated": "Hello world"}]),
    ]

    translator = GeminiTranslator(api_key="test-key", max_retries=2)
    results = translator.translate_batch(items, "en")

    assert results["r1"].translated == "Hello world"
    assert mock_model.generate_content.call_count == 2


def test_gemini_raises_after_max_retries(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.side_effect = RuntimeError("503 Service Unavailable")

    translator = GeminiTranslator(api_key="test-key", max_retries=3)
    with pytest.raises(TranslationError):
        translator.translate_batch(items, "en")

    assert mock_model.generate_content.call_count == 3


def test_gemini_missing_items_field_is_an_error(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.return_value = MagicMock(text=json.dumps({"error": "oops"}))

    with pytest.raises(TranslationError):
        GeminiTranslator(api_key="test-key", max_retries=1).translate_batch(items, "en")


def test_gemini_expired_deadline_makes_no_call(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value

    translator = GeminiTranslator(api_key="test-key")
    with pytest.raises(TranslationError, match="deadline"):
        translator.translate_batch(items, "en", deadline=time.monotonic() - 1)

    mock_model.generate_content.assert_not_called()


def test_gemini_passes_remaining_time_as_timeout(mock_genai, items):
    mock_model = mock_genai.GenerativeModel.return_value
    mock_model.generate_content.return_value = _llm_response([])

    GeminiTranslator(api_key="test-key").translate_batch(items, "en", deadline=time.monotonic() + 30)

    request_options = mock_model.generate_content.call_args.kwargs["request_options"]
    assert 0 < request_options["timeout"] <= 30


# NoopTranslator

def test_noop_returns_empty_results(items):
    results = NoopTranslator().translate_batch(items, "en")
    assert results == {
        "r1": TranslationResult(id="r1"),
        "r2": TranslationResult(id="r2"),
    }


# Adequacy heuristic

def test_adequacy_heuristic():
    assert is_poor_adequacy("", "", 0.5) is False
    assert is_poor_adequacy("0123456789", "", 0.5) is True
    assert is_poor_adequacy("0123456789", "abc", 0.5) is True
    assert is_poor_adequacy("0123456789", "abcde", 0.5) is False  # exactly at threshold
    assert is_poor_adequacy("0123456789", "abcdef", 0.5) is False


# CascadeTranslator

def test_cascade_without_primary_is_noop(items):
    assert CascadeTranslator(primary=None).translate_batch(items, "en") == {}


def test_cascade_empty_primary_result_without_fallback(items):
    cascade = CascadeTranslator(primary=FakeTranslator(), fallback=None)
    assert cascade.translate_batch(items, "en") == {}


def test_cascade_primary_error_without_fallback_propagates(items):
    cascade = CascadeTranslator(primary=FakeTranslator(error=TranslationError("boom")))
    with pytest.raises(TranslationError):
        cascade.translate_batch(items, "en")


def test_cascade_primary_error_delegates_whole_batch(items):
    fallback = FakeTranslator(results={
        "r1": _result("r1", "Hello world"),
        "r2": _result("r2", "Hello friends", lang="es"),
    })
    cascade = CascadeTranslator(
        primary=FakeTranslator(error=TranslationError("quota")),
        fallback=fallback
    )

    results = cascade.translate_batch(items, "en")

    assert fallback.calls == [["r1", "r2"]]
    assert results["r2"].translated == "Hello friends"


def test_cascade_fallback_error_after_primary_error_propagates(items):
    cascade = CascadeTranslator(
        primary=FakeTranslator(error=TranslationError("quota")),
        fallback=FakeTranslator(error=TranslationError("also down"))
    )
    with pytest.raises(TranslationError, match="also down"):
        cascade.translate_batch(items, "en")


def test_cascade_adequacy_is_opt_in(items):
    primary = FakeTranslator(results={"r1": _result("r1", "Hi")})
    fallback = FakeTranslator(results={"r1": _result("r1", "Hello world")})

    for sample_size, ratio in [(0, 0.5), (5, 0.0)]:
        cascade = CascadeTranslator(primary, fallback, sample_size=sample_size, adequacy_ratio=ratio)
        assert cascade.translate_batch(items, "en")["r1"].translated == "Hi"

    assert fallback.calls == []


def test_cascade_poor_sample_triggers_fallback():
    """Test that ratio 0.3 < 0.5 sends the item to the fallback."""
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "abc")})
    fallback = FakeTranslator(results={"r1": _result("r1", "abcdefghij")})

    cascade = CascadeTranslator(primary, fallback, sample_size=1, adequacy_ratio=0.5)
    results = cascade.translate_batch(items, "en")

    assert fallback.calls == [["r1"]]
    assert results["r1"].translated == "abcdefghij"


def test_cascade_adequate_sample_skips_fallback():
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "abcde")})
    fallback = FakeTranslator(results={"r1": _result("r1", "abcdefghij")})

    results = CascadeTranslator(primary, fallback, 1, 0.5).translate_batch(items, "en")

    assert fallback.calls == []
    assert results["r1"].translated == "abcde"


def test_cascade_samples_deterministic_prefix_only():
    items = [
        TranslationItem(id="r1", text="0123456789"),
        TranslationItem(id="r2", text="0123456789"),
        TranslationItem(id="r3", text="0123456789"),
    ]
    primary = FakeTranslator(results={
        "r1": _result("r1", "abcdefghij"),
        "r2": _result("r2", "x"),
        "r3": _result("r3", "y"),
    })
    fallback = FakeTranslator(results={
        "r2": _result("r2", "abcdefghij"),
        "r3": _result("r3", "abcdefghij"),
    })

    results = CascadeTranslator(primary, fallback, 2, 0.5).translate_batch(items, "en")

    assert fallback.calls == [["r2"]]
    assert results["r2"].translated == "abcdefghij"
    assert results["r3"].translated == "y"


def test_cascade_fallback_failure_keeps_primary_results():
    """Test graceful degrade when the fallback fails after a primary success."""
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "abc")})
    fallback = FakeTranslator(error=TranslationError("fallback down"))

    results = CascadeTranslator(primary, fallback, 1, 0.5).translate_batch(items, "en")

    assert results["r1"].translated == "abc"


def test_cascade_fallback_connection_error_keeps_primary_results():
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "abc")})
    fallback = FakeTranslator(error=ConnectionError("fallback socket reset"))

    results = CascadeTranslator(primary, fallback, 1, 0.5).translate_batch(items, "en")

    assert fallback.calls == [["r1"]]
    assert results["r1"].translated == "abc"


def test_cascade_primary_connection_error_delegates_to_fallback(items):
    fallback = FakeTranslator(results={"r1": _result("r1", "Hello world")})
    cascade = CascadeTranslator(
        primary=FakeTranslator(error=ConnectionError("primary socket reset")),
        fallback=fallback
    )

    results = cascade.translate_batch(items, "en")

    assert fallback.calls == [["r1", "r2"]]
    assert results["r1"].translated == "Hello world"


def test_cascade_primary_connection_error_without_fallback_propagates(items):
    cascade = CascadeTranslator(primary=FakeTranslator(error=ConnectionError("reset")))
    with pytest.raises(ConnectionError):
        cascade.translate_batch(items, "en")


def test_cascade_keeps_primary_when_fallback_is_also_poor():
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "abc")})
    fallback = FakeTranslator(results={"r1": _result("r1", "ab")})

    results = CascadeTranslator(primary, fallback, 1, 0.5).translate_batch(items, "en")

    assert results["r1"].translated == "abc"


def test_cascade_prefers_any_fallback_over_empty_primary():
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "")})
    fallback = FakeTranslator(results={"r1": _result("r1", "ab", lang="it")})

    results = CascadeTranslator(primary, fallback, 1, 0.5).translate_batch(items, "en")

    assert results["r1"].translated == "ab"
    assert results["r1"].lang == "it"


def test_cascade_missing_fallback_result_keeps_primary():
    items = [TranslationItem(id="r1", text="0123456789")]
    primary = FakeTranslator(results={"r1": _result("r1", "")})
    fallback = FakeTranslator(results={})

    results = CascadeTranslator(primary, fallback, 1, 0.5).translate_batch(items, "en")

    assert results["r1"].translated == ""


# build_translator

def test_build_translator_noop_provider():
    translator = build_translator(ProcessingConfig(), provider="noop")
    assert isinstance(translator, NoopTranslator)


def test_build_translator_gemini_with_fallback(mock_genai):
    config = ProcessingConfig(
        translate_fallback_enabled=True,
        translate_fallback_sample=3,
        translate_fallback_adequacy_ratio=0.4
    )
    translator = build_translator(
        config,
        provider="gemini",
        api_key="test-key",
        primary_model="gemini-1.5-flash",
        fallback_model="gemini-1.5-pro"
    )

    assert isinstance(translator, CascadeTranslator)
    assert translator.primary.model_name == "gemini-1.5-flash"
    assert translator.fallback.model_name == "gemini-1.5-pro"
    assert translator.sample_size == 3
    assert translator.adequacy_ratio == 0.4


def test_build_translator_gemini_without_fallback(mock_genai):
    translator = build_translator(ProcessingConfig(), provider="gemini", api_key="test-key")

    assert isinstance(translator, CascadeTranslator)
    assert translator.fallback is None


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
