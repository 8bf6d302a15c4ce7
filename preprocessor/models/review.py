"""
Review data models.

RawReview is read from the raw store; CleanReview is the normalized,
classified and optionally translated row written to the clean store.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class RawReview:
    """
    Raw review as stored by the upstream collector.
    Read-only to the pipeline.
    """
    id: str  # Unique within the raw store
    app_id: str
    country: str
    rating: int  # Star rating as collected, passed through unchecked
    title: str
    content: str
    reviewed_at: datetime  # UTC
    response_content: Optional[str] = None  # Developer response, if any
    response_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RawReview":
        """Create RawReview from a JSON record."""
        try:
            reviewed_at = parse_datetime(data["reviewed_at"])
            if reviewed_at is None:
                raise ValueError("Missing reviewed_at")
            return cls(
                id=str(data["id"]),
                app_id=str(data["app_id"]),
                country=data.get("country") or "",
                rating=int(data["rating"]),
                title=data.get("title") or "",
                content=data.get("content") or "",
                reviewed_at=reviewed_at,
                response_content=data.get("response_content"),
                response_date=parse_datetime(data.get("response_date")),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid raw review record: {e}") from e


@dataclass
class CleanReview:
    """
    Clean row produced from exactly one RawReview (same id).

    Non-contentful rows never carry a translation and use the
    configured default language.
    """
    id: str
    app_id: str
    country: str
    rating: int
    title: str
    content_clean: str
    language: str  # ISO-639-1 code, or the configured default
    is_contentful: bool
    reviewed_at: datetime
    content_en: Optional[str] = None  # English rendering, when translated
    response_date: Optional[datetime] = None
    response_content_clean: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CleanReview":
        """Create CleanReview from JSON dict."""
        return cls(
            id=data["id"],
            app_id=data["app_id"],
            country=data.get("country", ""),
            rating=data["rating"],
            title=data.get("title", ""),
            content_clean=data.get("content_clean", ""),
            language=data.get("language", ""),
            is_contentful=data.get("is_contentful", False),
            reviewed_at=parse_datetime(data["reviewed_at"]),
            content_en=data.get("content_en"),
            response_date=parse_datetime(data.get("response_date")),
            response_content_clean=data.get("response_content_clean"),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "app_id": self.app_id,
            "country": self.country,
            "rating": self.rating,
            "title": self.title,
            "content_clean": self.content_clean,
            "language": self.language,
            "content_en": self.content_en,
            "is_contentful": self.is_contentful,
            "reviewed_at": _format_datetime(self.reviewed_at),
            "response_date": _format_datetime(self.response_date),
            "response_content_clean": self.response_content_clean,
        }
