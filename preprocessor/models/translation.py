"""
Translation data models.

Ephemeral units passed into and out of translators.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TranslationItem:
    """One text to translate, keyed by the clean review id."""
    id: str
    text: str

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True)
class TranslationResult:
    """
    Translator output for one item.

    An empty `translated` means no translation was produced
    (or the text is already in the target language).
    """
    id: str
    lang: str = ""
    translated: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "TranslationResult":
        """
        Create TranslationResult from a response item.

        Raises:
            ValueError: If lang or translated is present but not a string
        """
        lang = _optional_str(data, "lang")
        translated = _optional_str(data, "translated")
        return cls(id=str(data["id"]), lang=lang, translated=translated)


def _optional_str(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, got {type(value).__name__}")
    return value
