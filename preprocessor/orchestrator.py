"""
Pipeline Orchestrator.

Runs one PrepareRequest through the preprocessing pipeline:
fetch → clean → classify → detect language → translate → persist → publish.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from config.settings import ProcessingConfig
from preprocessor.agents.contentfulness import is_contentful
from preprocessor.agents.language import UNDETERMINED, detect_language
from preprocessor.agents.text_cleaner import clean_text
from preprocessor.agents.translation import NoopTranslator, Translator
from preprocessor.models.events import PrepareCompleted, PrepareRequest
from preprocessor.models.review import CleanReview, RawReview
from preprocessor.models.translation import TranslationItem

logger = logging.getLogger(__name__)

# Only English is supported as a translation target
SUPPORTED_TARGET_LANG = "en"
DEFAULT_TRANSLATE_BATCH_SIZE = 20
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_time(value: str, default: datetime) -> datetime:
    """
    Parse a request date.

    Accepts a timestamp with timezone (RFC 3339) or a bare YYYY-MM-DD date,
    interpreted as midnight UTC. Empty or unparseable values yield default.
    """
    if not value:
        return default
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable date {value!r}, using default")
        return default
    if parsed.tzinfo is None:
        logger.debug(f"Date {value!r} has no timezone, using default")
        return default
    return parsed


class PreprocessOrchestrator:
    """
    Orchestrates preprocessing for one request at a time.

    Coordinates:
    1. Raw fetch → 2. Cleaning + contentfulness → 3. Language detection
    → 4. Sub-batch translation → 5. Clean store upsert → 6. Completion event

    Fetch, persistence and publish failures propagate to the caller;
    translation failures only skip the affected sub-batch.
    """

    def __init__(
        self,
        raw_store,
        clean_store,
        producer,
        config: ProcessingConfig,
        translator: Optional[Translator] = None
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            raw_store: Object with fetch(app_id, countries, date_from, date_to, limit)
            clean_store: Object with upsert_batch(rows)
            producer: Object with publish(PrepareCompleted)
            config: Processing configuration
            translator: Translator for non-target-language rows (Noop if None)
        """
        self.raw_store = raw_store
        self.clean_store = clean_store
        self.producer = producer
        self.config = config
        self.translator = translator if translator is not None else NoopTranslator()

        logger.info(
            f"Initialized PreprocessOrchestrator with translator={type(self.translator).__name__}, "
            f"translate_enabled={config.translate_enabled}"
        )

    def handle(self, request: PrepareRequest) -> PrepareCompleted:
        """
        Process one request end to end.

        Args:
            request: Inbound prepare request

        Returns:
            The published completion event
        """
        date_from = parse_time(request.date_from, EPOCH)
        date_to = parse_time(request.date_to, datetime.now(timezone.utc))

        logger.info(
            f"Handling request for {request.app_id}: "
            f"{date_from.isoformat()} to {date_to.isoformat()}, countries={request.countries or 'all'}"
        )
        start_time = time.monotonic()

        # STAGE 1: Fetch
        raw_reviews = self.raw_store.fetch(
            request.app_id,
            request.countries,
            date_from,
            date_to,
            request.limit
        )

        # STAGE 2: Clean, classify, detect
        clean_batch, publish_ids = self.build_clean_batch(raw_reviews)
        clean_count = len(publish_ids)
        logger.info(
            f"Built {len(clean_batch)} clean rows from {len(raw_reviews)} raw reviews "
            f"({clean_count} contentful)"
        )

        # STAGE 3: Translation (non-fatal)
        self.run_translations(clean_batch)

        # STAGE 4: Persist
        self.clean_store.upsert_batch(clean_batch)

        # STAGE 5: Publish
        limit = self.config.publish_ids_limit
        if limit > 0 and len(publish_ids) > limit:
            publish_ids = publish_ids[:limit]

        completed = PrepareCompleted(
            request=request,
            clean_count=clean_count,
            review_ids=publish_ids
        )
        self.producer.publish(completed)

        logger.info(
            f"Request for {request.app_id} complete in "
            f"{time.monotonic() - start_time:.2f}s: {clean_count} contentful rows"
        )
        return completed

    def build_clean_batch(self, raw_reviews: List[RawReview]) -> Tuple[List[CleanReview], List[str]]:
        """
        Clean, classify and language-tag raw reviews.

        Returns:
            (clean rows, ids of contentful rows in input order)
        """
        cfg = self.config
        clean_batch: List[CleanReview] = []
        publish_ids: List[str] = []

        for raw in raw_reviews:
            text, ok = self._clean(raw.content)
            if not ok:
                logger.debug(f"Review {raw.id} below minimum length")
                self._append_skipped(clean_batch, raw, text)
                continue

            if not is_contentful(text, cfg.min_words, cfg.min_chars, cfg.min_alpha_ratio):
                logger.debug(f"Review {raw.id} not contentful")
                self._append_skipped(clean_batch, raw, text)
                continue

            language, confidence = detect_language(text)
            if language == UNDETERMINED:
                language = cfg.default_lang
            elif confidence < cfg.lang_detect_min_conf:
                # Reliable detections are kept even below the floor
                logger.debug(
                    f"Review {raw.id}: kept '{language}' at confidence {confidence:.2f} "
                    f"(floor {cfg.lang_detect_min_conf})"
                )

            response_clean = None
            if raw.response_content is not None:
                response_text, response_ok = self._clean(raw.response_content)
                if response_ok:
                    response_clean = response_text

            clean_batch.append(CleanReview(
                id=raw.id,
                app_id=raw.app_id,
                country=raw.country,
                rating=raw.rating,
                title=raw.title,
                content_clean=text,
                language=language,
                is_contentful=True,
                reviewed_at=raw.reviewed_at,
                response_date=raw.response_date,
                response_content_clean=response_clean
            ))
            publish_ids.append(raw.id)

        return clean_batch, publish_ids

    def run_translations(self, clean_batch: List[CleanReview]) -> None:
        """
        Translate contentful non-target rows in place, one sub-batch at a time.

        A failed sub-batch is logged and skipped; its rows keep their
        original-language content.
        """
        cfg = self.config
        if not cfg.translate_enabled or cfg.translate_target_lang != SUPPORTED_TARGET_LANG:
            return

        target = cfg.translate_target_lang
        by_id: Dict[str, CleanReview] = {}
        to_translate: List[TranslationItem] = []
        for row in clean_batch:
            if row.is_contentful and row.language != target:
                to_translate.append(TranslationItem(id=row.id, text=row.content_clean))
                by_id[row.id] = row

        if not to_translate:
            return

        batch_size = cfg.translate_batch_size
        if batch_size <= 0:
            batch_size = DEFAULT_TRANSLATE_BATCH_SIZE

        logger.info(f"Translating {len(to_translate)} rows in batches of {batch_size}")

        translated = 0
        failed_batches = 0
        for start in range(0, len(to_translate), batch_size):
            sub_batch = to_translate[start:start + batch_size]
            deadline = None
            if cfg.translate_timeout > 0:
                deadline = time.monotonic() + cfg.translate_timeout

            try:
                results = self.translator.translate_batch(sub_batch, target, deadline)
            except Exception as e:
                failed_batches += 1
                logger.warning(
                    f"Translation failed for sub-batch {start // batch_size + 1} "
                    f"({len(sub_batch)} items), keeping original text: {e}"
                )
                continue

            for item in sub_batch:
                result = results.get(item.id)
                if result is None:
                    continue
                row = by_id[item.id]
                if result.translated:
                    row.content_en = result.translated
                    translated += 1
                if result.lang:
                    row.language = result.lang

        logger.info(
            f"Translation pass complete: {translated}/{len(to_translate)} translated, "
            f"{failed_batches} failed sub-batches"
        )

    def _clean(self, text: str) -> Tuple[str, bool]:
        cfg = self.config
        return clean_text(
            text,
            cfg.html_strip,
            cfg.emoji_strip,
            cfg.whitespace_normalize,
            cfg.max_review_len,
            cfg.min_content_len
        )

    def _append_skipped(self, clean_batch: List[CleanReview], raw: RawReview, text: str) -> None:
        """Keep a non-contentful row only when save_skipped is enabled."""
        if not self.config.save_skipped:
            return
        clean_batch.append(CleanReview(
            id=raw.id,
            app_id=raw.app_id,
            country=raw.country,
            rating=raw.rating,
            title=raw.title,
            content_clean=text,
            language=self.config.default_lang,
            is_contentful=False,
            reviewed_at=raw.reviewed_at
        ))
