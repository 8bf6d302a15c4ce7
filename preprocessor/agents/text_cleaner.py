"""
Text Normalizer.

Strips markup and emoji, collapses whitespace and enforces
length bounds on review text. Pure functions, no side effects.
"""

import re
from typing import Tuple

# Anything between '<' and '>' counts as a tag; unbalanced markup is tolerated
HTML_TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
EMOJI_RE = re.compile(
    "["
    "\u2190-\u21FF"          # arrows
    "\u2600-\u27BF"          # misc symbols, dingbats
    "\U0001F300-\U0001F6FF"  # pictographs, emoticons, transport
    "\U0001F900-\U0001F9FF"  # supplemental symbols and pictographs
    "\U0001FA70-\U0001FAFF"  # symbols and pictographs extended-A
    "]"
)


def clean_text(
    text: str,
    strip_html: bool,
    strip_emoji: bool,
    normalize_whitespace: bool,
    max_len: int,
    min_len: int
) -> Tuple[str, bool]:
    """
    Clean review text.

    Args:
        text: Raw text
        strip_html: Replace every tag with a single space
        strip_emoji: Replace every pictographic code point with a space
        normalize_whitespace: Trim and collapse whitespace runs to one space
        max_len: Truncate to this many characters if > 0
        min_len: Minimum length of the result

    Returns:
        (cleaned_text, ok) where ok is False iff the result is shorter
        than min_len. A False ok is a classification outcome, not an error.
    """
    out = text
    if strip_html:
        out = HTML_TAG_RE.sub(" ", out)
    if strip_emoji:
        out = EMOJI_RE.sub(" ", out)
    if normalize_whitespace:
        out = WHITESPACE_RE.sub(" ", out.strip())
    if max_len > 0 and len(out) > max_len:
        out = out[:max_len]
    return out, len(out) >= min_len
