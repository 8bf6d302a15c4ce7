"""
Configuration settings for the review preprocessor.

Centralized configuration for text cleaning, language detection,
translation and pipeline parameters. Every value can be overridden
through an environment variable.
"""

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_ROOT = Path(os.getenv("PREPROCESS_DATA_ROOT", str(PROJECT_ROOT / "data")))

# API Configuration
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# Text cleaning
HTML_STRIP = _env_bool("PREPROCESS_HTML_STRIP", True)
EMOJI_STRIP = _env_bool("PREPROCESS_EMOJI_STRIP", True)
WHITESPACE_NORMALIZE = _env_bool("PREPROCESS_WHITESPACE_NORMALIZE", True)
MAX_REVIEW_LEN = _env_int("PREPROCESS_MAX_REVIEW_LEN", 4000)
MIN_CONTENT_LEN = _env_int("PREPROCESS_MIN_CONTENT_LEN", 3)

# Contentfulness thresholds
MIN_WORDS = _env_int("PREPROCESS_MIN_WORDS", 2)
MIN_CHARS = _env_int("PREPROCESS_MIN_CHARS", 10)
MIN_ALPHA_RATIO = _env_float("PREPROCESS_MIN_ALPHA_RATIO", 0.5)
SAVE_SKIPPED = _env_bool("PREPROCESS_SAVE_SKIPPED", False)

# Language detection
DEFAULT_LANG = os.getenv("PREPROCESS_DEFAULT_LANG", "en")
LANG_DETECT_MIN_CONF = _env_float("PREPROCESS_LANG_DETECT_MIN_CONF", 0.6)

# Translation
TRANSLATE_ENABLED = _env_bool("PREPROCESS_TRANSLATE_ENABLED", False)
TRANSLATE_TARGET_LANG = os.getenv("PREPROCESS_TRANSLATE_TARGET_LANG", "en")
TRANSLATE_BATCH_SIZE = _env_int("PREPROCESS_TRANSLATE_BATCH_SIZE", 20)
TRANSLATE_TIMEOUT_SECONDS = _env_float("PREPROCESS_TRANSLATE_TIMEOUT_SECONDS", 15.0)
TRANSLATE_PROVIDER = os.getenv("PREPROCESS_TRANSLATE_PROVIDER", "noop")  # "gemini" or "noop"
TRANSLATE_MODEL = os.getenv("PREPROCESS_TRANSLATE_MODEL", "gemini-1.5-flash")
TRANSLATE_MAX_RETRIES = _env_int("PREPROCESS_TRANSLATE_MAX_RETRIES", 2)

# Translation fallback (adequacy-checked re-translation)
TRANSLATE_FALLBACK_ENABLED = _env_bool("PREPROCESS_TRANSLATE_FALLBACK_ENABLED", False)
TRANSLATE_FALLBACK_MODEL = os.getenv("PREPROCESS_TRANSLATE_FALLBACK_MODEL", "gemini-1.5-pro")
TRANSLATE_FALLBACK_SAMPLE = _env_int("PREPROCESS_TRANSLATE_FALLBACK_SAMPLE", 5)
TRANSLATE_FALLBACK_ADEQUACY_RATIO = _env_float("PREPROCESS_TRANSLATE_FALLBACK_ADEQUACY_RATIO", 0.5)

# Temperature settings (0.0 for deterministic)
LLM_TEMPERATURE = 0.0

# Pipeline
PUBLISH_IDS_LIMIT = _env_int("PREPROCESS_PUBLISH_IDS_LIMIT", 1000)

# Logging
LOG_LEVEL = os.getenv("PREPROCESS_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class ProcessingConfig:
    """
    Immutable processing configuration.

    Built once at startup and passed explicitly to every component,
    so tests can construct it with literal values.
    """
    default_lang: str = "en"
    publish_ids_limit: int = 0
    max_review_len: int = 0
    min_content_len: int = 0
    html_strip: bool = True
    emoji_strip: bool = True
    whitespace_normalize: bool = True

    min_words: int = 0
    min_chars: int = 0
    min_alpha_ratio: float = 0.0
    save_skipped: bool = False

    lang_detect_min_conf: float = 0.0
    translate_enabled: bool = False
    translate_target_lang: str = "en"
    translate_batch_size: int = 20
    translate_timeout: float = 0.0  # seconds, <= 0 disables the deadline

    translate_fallback_enabled: bool = False
    translate_fallback_sample: int = 0
    translate_fallback_adequacy_ratio: float = 0.0


def load_processing_config() -> ProcessingConfig:
    """Build the processing configuration from the module settings."""
    return ProcessingConfig(
        default_lang=DEFAULT_LANG,
        publish_ids_limit=PUBLISH_IDS_LIMIT,
        max_review_len=MAX_REVIEW_LEN,
        min_content_len=MIN_CONTENT_LEN,
        html_strip=HTML_STRIP,
        emoji_strip=EMOJI_STRIP,
        whitespace_normalize=WHITESPACE_NORMALIZE,
        min_words=MIN_WORDS,
        min_chars=MIN_CHARS,
        min_alpha_ratio=MIN_ALPHA_RATIO,
        save_skipped=SAVE_SKIPPED,
        lang_detect_min_conf=LANG_DETECT_MIN_CONF,
        translate_enabled=TRANSLATE_ENABLED,
        translate_target_lang=TRANSLATE_TARGET_LANG,
        translate_batch_size=TRANSLATE_BATCH_SIZE,
        translate_timeout=TRANSLATE_TIMEOUT_SECONDS,
        translate_fallback_enabled=TRANSLATE_FALLBACK_ENABLED,
        translate_fallback_sample=TRANSLATE_FALLBACK_SAMPLE,
        translate_fallback_adequacy_ratio=TRANSLATE_FALLBACK_ADEQUACY_RATIO,
    )
