"""
Storage utility.

File-backed raw and clean review stores:
- Raw reviews (data/raw/*.json), read-only
- Clean reviews (data/clean/clean_reviews.json), atomic upsert by id
"""

import glob
import json
import os
import logging
import tempfile
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd

from preprocessor.models.review import RawReview, CleanReview

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a store cannot be read or written."""


def _discard(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


class RawReviewStore:
    """
    Read-only access to raw reviews.

    Each *.json file in raw_dir holds a JSON list of raw review records.
    """

    def __init__(self, raw_dir: str):
        """
        Initialize raw review store.

        Args:
            raw_dir: Directory containing raw review JSON files
        """
        self.raw_dir = raw_dir
        logger.info(f"Initialized RawReviewStore with raw_dir={raw_dir}")

    def fetch(
        self,
        app_id: str,
        countries: Optional[Iterable[str]],
        date_from: datetime,
        date_to: datetime,
        limit: Optional[int] = None
    ) -> List[RawReview]:
        """
        Fetch raw reviews for an app within a date window.

        Args:
            app_id: Application identifier
            countries: Country codes to keep; empty or None means no filter
            date_from: Inclusive lower bound (aware datetime)
            date_to: Inclusive upper bound (aware datetime)
            limit: Maximum number of rows, if positive

        Returns:
            RawReview list ordered by reviewed_at ascending

        Raises:
            StorageError: If a raw file cannot be read or parsed
        """
        records = self._load_records()
        if not records:
            logger.info(f"No raw reviews found in {self.raw_dir}")
            return []

        df = pd.DataFrame(records)
        for column in ("app_id", "country", "reviewed_at"):
            if column not in df.columns:
                df[column] = None

        reviewed_at = pd.to_datetime(df["reviewed_at"], utc=True, errors="coerce", format="ISO8601")
        mask = (
            (df["app_id"] == app_id)
            & reviewed_at.notna()
            & (reviewed_at >= pd.Timestamp(date_from))
            & (reviewed_at <= pd.Timestamp(date_to))
        )
        country_set = set(countries or [])
        if country_set:
            mask &= df["country"].isin(country_set)

        df = df.assign(_reviewed_at=reviewed_at)[mask]
        df = df.sort_values("_reviewed_at", kind="stable").drop(columns="_reviewed_at")

        # NaN -> None for columns missing in some records
        df = df.astype(object).where(df.notna(), None)

        reviews = []
        for record in df.to_dict(orient="records"):
            try:
                review = RawReview.from_dict(record)
            except ValueError as e:
                logger.warning(f"Skipping invalid raw review {record.get('id')!r}: {e}")
                continue

            reviews.append(review)
            if limit is not None and limit > 0 and len(reviews) >= limit:
                break

        logger.info(f"Fetched {len(reviews)} raw reviews for {app_id}")
        return reviews

    def _load_records(self) -> List[Dict]:
        """Load all raw records from disk."""
        records: List[Dict] = []
        for filepath in sorted(glob.glob(os.path.join(self.raw_dir, "*.json"))):
            try:
                with open(filepath, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to load raw reviews from {filepath}: {e}")
                raise StorageError(f"Failed to load raw reviews from {filepath}: {e}") from e

            if not isinstance(data, list):
                raise StorageError(f"Expected a JSON list in {filepath}")
            records.extend(r for r in data if isinstance(r, dict))
        return records


class CleanReviewStore:
    """
    Clean review persistence.

    The whole file is rewritten through a temporary file and
    os.replace, so a batch is committed entirely or not at all.
    """

    def __init__(self, clean_path: str):
        """
        Initialize clean review store.

        Args:
            clean_path: Path to clean_reviews.json
        """
        self.clean_path = clean_path
        os.makedirs(os.path.dirname(os.path.abspath(clean_path)), exist_ok=True)
        logger.info(f"Initialized CleanReviewStore with clean_path={clean_path}")

    def upsert_batch(self, rows: List[CleanReview]) -> None:
        """
        Insert or overwrite rows keyed by id.

        Args:
            rows: Clean reviews; an empty list is a no-op

        Raises:
            StorageError: If the store cannot be read or written
        """
        if not rows:
            return

        stored = self._load_dicts()
        for row in rows:
            stored[row.id] = row.to_dict()

        directory = os.path.dirname(os.path.abspath(self.clean_path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Failed to save clean reviews: {e}") from e

        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(list(stored.values()), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.clean_path)
        except OSError as e:
            _discard(tmp_path)
            logger.error(f"Failed to save clean reviews: {e}")
            raise StorageError(f"Failed to save clean reviews: {e}") from e
        except BaseException:
            # Interrupted mid-write: the previous file stays untouched
            _discard(tmp_path)
            raise

        logger.info(f"Upserted {len(rows)} clean reviews to {self.clean_path}")

    def load_all(self) -> List[CleanReview]:
        """Load every stored clean review."""
        return [CleanReview.from_dict(d) for d in self._load_dicts().values()]

    def _load_dicts(self) -> Dict[str, Dict]:
        if not os.path.exists(self.clean_path):
            return {}
        try:
            with open(self.clean_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load clean reviews: {e}")
            raise StorageError(f"Failed to load clean reviews: {e}") from e

        if not isinstance(data, list) or not all(isinstance(d, dict) and "id" in d for d in data):
            logger.error(f"Unexpected clean store layout in {self.clean_path}")
            raise StorageError(f"Expected a JSON list of clean reviews with ids in {self.clean_path}")
        return {d["id"]: d for d in data}
