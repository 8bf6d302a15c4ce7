"""
Translation agents.

All translators share one capability, translate_batch(items, target_lang).
CascadeTranslator wraps a primary and an optional fallback translator and
re-translates a sampled subset when the primary output looks inadequate.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import google.generativeai as genai

from config.settings import ProcessingConfig
from preprocessor.models.translation import TranslationItem, TranslationResult

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a translator for app store reviews.

Your task:
1. Read the JSON object with "items" (each with "id" and "text") and a "target" language code
2. Detect the language of each text and report its ISO-639-1 code in "lang"
3. Translate each text into the target language and put it in "translated"

Rules:
- Keep every "id" exactly as given, one output item per input item
- If a text is already in the target language, set "translated" to an empty string
- Preserve meaning and tone; do not summarize, add or drop information
- Return strict JSON only

Schema: {"items": [{"id": "", "lang": "", "translated": ""}]}"""


def _construct_user_prompt(items: List[TranslationItem], target_lang: str) -> str:
    """Construct user prompt from translation items."""
    payload = {
        "items": [item.to_dict() for item in items],
        "target": target_lang,
    }
    return json.dumps(payload, ensure_ascii=False)


class TranslationError(Exception):
    """Raised when a translator cannot produce results for a batch."""


class Translator(ABC):
    """Batch translation capability."""

    @abstractmethod
    def translate_batch(
        self,
        items: List[TranslationItem],
        target_lang: str,
        deadline: Optional[float] = None
    ) -> Dict[str, TranslationResult]:
        """
        Translate a batch of items.

        Args:
            items: Items to translate (not retained after the call)
            target_lang: ISO-639-1 target language code
            deadline: Absolute time.monotonic() value bounding the call, or None

        Returns:
            Mapping of item id to TranslationResult (items may be missing)

        Raises:
            TranslationError: If the batch could not be translated
        """


class NoopTranslator(Translator):
    """Returns an empty translation for every item."""

    def translate_batch(self, items, target_lang, deadline=None):
        return {item.id: TranslationResult(id=item.id) for item in items}


class GeminiTranslator(Translator):
    """
    Translates batches with one Gemini model.

    The model answers in JSON mode with one result per input id.
    Errors are retried up to max_retries attempts, never past the deadline.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.0,
        max_retries: int = 2
    ):
        """
        Initialize Gemini translator.

        Args:
            api_key: Gemini API key
            model_name: Gemini model to use
            temperature: LLM temperature (0.0 for deterministic)
            max_retries: Number of attempts per batch
        """
        self.model_name = model_name
        self.temperature = temperature
        self.max_retries = max(1, max_retries)

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={
                "temperature": temperature,
                "response_mime_type": "application/json"
            },
            system_instruction=SYSTEM_PROMPT
        )

        logger.info(f"Initialized GeminiTranslator with model={model_name}, temp={temperature}")

    def translate_batch(self, items, target_lang, deadline=None):
        if not items:
            return {}

        user_prompt = _construct_user_prompt(items, target_lang)
        requested_ids = {item.id for item in items}
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            request_options = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TranslationError(
                        f"{self.model_name}: deadline exceeded after {attempt} attempt(s)"
                    ) from last_error
                request_options = {"timeout": remaining}

            try:
                response = self.model.generate_content(user_prompt, request_options=request_options)
                results = self._parse_llm_response(response.text, requested_ids)
                logger.debug(f"{self.model_name} translated {len(results)}/{len(items)} items")
                return results

            except ValueError as e:
                # Malformed JSON, wrong schema, or a blocked response without text
                last_error = e
                logger.error(f"Invalid translation response from {self.model_name} (attempt {attempt + 1}): {e}")

            except Exception as e:
                last_error = e
                logger.error(f"Translation API error from {self.model_name} (attempt {attempt + 1}): {e}")

        raise TranslationError(
            f"{self.model_name} failed after {self.max_retries} attempt(s): {last_error}"
        ) from last_error

    def _parse_llm_response(self, response_text: str, requested_ids: set) -> Dict[str, TranslationResult]:
        """
        Parse LLM JSON response into TranslationResult objects.

        Raises:
            ValueError: If the response is not valid JSON or misses the 'items' list
        """
        data = json.loads(response_text)

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise ValueError("LLM response missing 'items' list")

        results = {}
        for entry in data["items"]:
            try:
                result = TranslationResult.from_dict(entry)
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Invalid item in translation response: {e}")
                continue

            if result.id not in requested_ids:
                logger.warning(f"Translation response contains unknown id {result.id!r}")
                continue
            results[result.id] = result

        return results


def is_poor_adequacy(source: str, translated: str, min_ratio: float) -> bool:
    """
    Length-ratio adequacy heuristic.

    An empty source is never poor; an empty translation of a non-empty
    source always is. A ratio exactly at min_ratio is acceptable.
    """
    if not source:
        return False
    if not translated:
        return True
    return len(translated) / len(source) < min_ratio


class CascadeTranslator(Translator):
    """
    Primary translator with an optional fallback.

    Decision process:
    1. Primary fails: the whole batch goes to the fallback (if any)
    2. Primary succeeds: a deterministic prefix sample is adequacy-checked
    3. Poor sampled items are re-translated by the fallback, and the
       fallback result replaces the primary one only when it is better
    """

    def __init__(
        self,
        primary: Optional[Translator],
        fallback: Optional[Translator] = None,
        sample_size: int = 0,
        adequacy_ratio: float = 0.0
    ):
        self.primary = primary
        self.fallback = fallback
        self.sample_size = sample_size
        self.adequacy_ratio = adequacy_ratio

    def translate_batch(self, items, target_lang, deadline=None):
        if self.primary is None:
            return {}

        try:
            results = self.primary.translate_batch(items, target_lang, deadline)
        except Exception as e:
            if self.fallback is None:
                raise
            logger.warning(f"Primary translator failed ({e}), delegating {len(items)} items to fallback")
            return self.fallback.translate_batch(items, target_lang, deadline)

        if self.fallback is None or self.sample_size <= 0 or self.adequacy_ratio <= 0:
            return results

        sample = items[:min(self.sample_size, len(items))]
        poor = [
            item for item in sample
            if item.id in results
            and is_poor_adequacy(item.text, results[item.id].translated, self.adequacy_ratio)
        ]
        if not poor:
            return results

        logger.info(f"{len(poor)}/{len(sample)} sampled translations look inadequate, retrying with fallback")

        try:
            fallback_results = self.fallback.translate_batch(poor, target_lang, deadline)
        except Exception as e:
            logger.warning(f"Fallback translator failed ({e}), keeping primary results")
            return results

        results = dict(results)
        replaced = 0
        for item in poor:
            fallback_result = fallback_results.get(item.id)
            if fallback_result is None:
                continue
            primary_empty = results[item.id].translated == ""
            if primary_empty or not is_poor_adequacy(item.text, fallback_result.translated, self.adequacy_ratio):
                results[item.id] = fallback_result
                replaced += 1

        logger.debug(f"Fallback replaced {replaced}/{len(poor)} translations")
        return results


def build_translator(
    config: ProcessingConfig,
    provider: str,
    api_key: str = "",
    primary_model: str = "gemini-1.5-flash",
    fallback_model: str = "gemini-1.5-pro",
    temperature: float = 0.0,
    max_retries: int = 2
) -> Translator:
    """
    Select the translator for the configured provider.

    "gemini" builds a cascade over a primary model and, when fallback is
    enabled, a second model. Any other provider yields a NoopTranslator.
    """
    if provider != "gemini":
        logger.info(f"Translation provider '{provider}' -> NoopTranslator")
        return NoopTranslator()

    primary = GeminiTranslator(
        api_key=api_key,
        model_name=primary_model,
        temperature=temperature,
        max_retries=max_retries
    )
    fallback = None
    if config.translate_fallback_enabled:
        fallback = GeminiTranslator(
            api_key=api_key,
            model_name=fallback_model,
            temperature=temperature,
            max_retries=max_retries
        )

    return CascadeTranslator(
        primary=primary,
        fallback=fallback,
        sample_size=config.translate_fallback_sample,
        adequacy_ratio=config.translate_fallback_adequacy_ratio
    )
