"""
Language Detector.

Reports the dominant language of a text with a confidence score.
Applies no policy: callers decide what to do with low confidence.
"""

import logging
import re
from typing import Tuple

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

logger = logging.getLogger(__name__)

UNDETERMINED = "und"

# Top-candidate probability below which the detector result is not reliable
RELIABLE_PROBABILITY = 0.5

_ISO_639_1_RE = re.compile(r"^[a-z]{2}$")

# langdetect is randomized unless seeded
DetectorFactory.seed = 0


def _to_iso_639_1(code: str) -> str:
    """Map a langdetect code (e.g. 'fr', 'zh-cn') to a two-letter code, or ''."""
    base = code.split("-", 1)[0].lower()
    return base if _ISO_639_1_RE.match(base) else ""


def detect_language(text: str) -> Tuple[str, float]:
    """
    Detect the dominant language of text.

    Args:
        text: Cleaned review text

    Returns:
        (iso_code, confidence). ("und", 0.0) when the text is empty or the
        detection is unreliable; ("und", confidence) when the detection is
        reliable but has no two-letter code.
    """
    if not text:
        return UNDETERMINED, 0.0

    try:
        candidates = detect_langs(text)
    except LangDetectException as e:
        logger.debug(f"Language detection failed: {e}")
        return UNDETERMINED, 0.0

    if not candidates:
        return UNDETERMINED, 0.0

    top = candidates[0]
    if top.prob < RELIABLE_PROBABILITY:
        return UNDETERMINED, 0.0

    code = _to_iso_639_1(top.lang)
    if not code:
        return UNDETERMINED, top.prob
    return code, top.prob
