"""
Event data models.

PrepareRequest is consumed once per pipeline run; PrepareCompleted is
emitted after the clean batch has been persisted.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class PrepareRequest:
    """
    Inbound request to prepare one batch of reviews.
    Dates are ISO date or date-time strings; empty means "use the default".
    """
    app_id: str
    countries: List[str] = field(default_factory=list)  # Empty = no country filter
    date_from: str = ""
    date_to: str = ""
    limit: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "PrepareRequest":
        """
        Create PrepareRequest from an event payload.

        Raises:
            ValueError: If the payload is not a valid request
        """
        if not isinstance(data, dict):
            raise ValueError(f"Request payload must be an object, got {type(data).__name__}")

        app_id = data.get("app_id")
        if not isinstance(app_id, str) or not app_id:
            raise ValueError("Request payload missing 'app_id'")

        countries = data.get("countries") or []
        if not isinstance(countries, list) or not all(isinstance(c, str) for c in countries):
            raise ValueError(f"Invalid 'countries': {countries!r}")

        date_from = data.get("date_from") or ""
        date_to = data.get("date_to") or ""
        if not isinstance(date_from, str) or not isinstance(date_to, str):
            raise ValueError("'date_from' and 'date_to' must be strings")

        limit = data.get("limit")
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int)):
            raise ValueError(f"Invalid 'limit': {limit!r}")

        return cls(
            app_id=app_id,
            countries=list(countries),
            date_from=date_from,
            date_to=date_to,
            limit=limit,
        )

    def to_dict(self) -> dict:
        return {
            "app_id": self.app_id,
            "countries": list(self.countries),
            "date_from": self.date_from,
            "date_to": self.date_to,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class PrepareCompleted:
    """
    Completion signal for one request.

    clean_count is the number of contentful rows produced;
    review_ids may be capped and therefore shorter.
    """
    request: PrepareRequest
    clean_count: int
    review_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.request.to_dict()
        data["clean_count"] = self.clean_count
        data["review_ids"] = list(self.review_ids)
        return data
