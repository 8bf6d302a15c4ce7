"""
Contentfulness Classifier.

Heuristic gate deciding whether cleaned text carries enough
signal to be worth translating and publishing.
"""


def _is_informative(char: str) -> bool:
    # Non-ASCII code points count as informative so non-Latin scripts are not penalized
    if not char.isascii():
        return True
    return char.isalnum()


def is_contentful(
    text: str,
    min_words: int,
    min_chars: int,
    min_alpha_ratio: float
) -> bool:
    """
    Decide whether text is contentful.

    Every enabled threshold must pass. A threshold <= 0 disables its check.

    Args:
        text: Cleaned review text
        min_words: Minimum whitespace-separated word count
        min_chars: Minimum length in characters
        min_alpha_ratio: Minimum share of letters, digits and non-ASCII characters

    Returns:
        True if the text passes every enabled check
    """
    if not text or not text.strip():
        return False

    if min_chars > 0 and len(text) < min_chars:
        return False

    if min_words > 0 and len(text.split()) < min_words:
        return False

    if min_alpha_ratio > 0:
        informative = sum(1 for char in text if _is_informative(char))
        if informative / len(text) < min_alpha_ratio:
            return False

    return True
