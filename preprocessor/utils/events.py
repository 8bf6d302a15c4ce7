"""
Event transport.

JSON Lines files standing in for the inbound request topic
and the outbound completion topic.
"""

import json
import os
import logging
from typing import Iterator

from preprocessor.models.events import PrepareCompleted, PrepareRequest
from preprocessor.utils.storage import StorageError

logger = logging.getLogger(__name__)


class EventConsumer:
    """
    Reads PrepareRequest events from a JSON Lines file.

    Malformed lines are logged and skipped; they never stop iteration.
    """

    def __init__(self, events_path: str):
        self.events_path = events_path

    def __iter__(self) -> Iterator[PrepareRequest]:
        try:
            f = open(self.events_path, 'r', encoding='utf-8')
        except OSError as e:
            raise StorageError(f"Failed to open events file {self.events_path}: {e}") from e

        with f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield PrepareRequest.from_dict(json.loads(line))
                except ValueError as e:
                    # json.JSONDecodeError is a ValueError too
                    logger.warning(f"Invalid message at {self.events_path}:{line_no}: {e}")


class EventProducer:
    """Appends PrepareCompleted events to a JSON Lines file."""

    def __init__(self, outbox_path: str):
        self.outbox_path = outbox_path
        os.makedirs(os.path.dirname(os.path.abspath(outbox_path)), exist_ok=True)

    def publish(self, event: PrepareCompleted) -> None:
        """
        Publish one completion event.

        Raises:
            StorageError: If the event cannot be written
        """
        line = json.dumps(event.to_dict(), ensure_ascii=False)
        try:
            with open(self.outbox_path, 'a', encoding='utf-8') as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error(f"Failed to publish completion event: {e}")
            raise StorageError(f"Failed to publish completion event: {e}") from e

        logger.info(
            f"Published completion for {event.request.app_id}: "
            f"clean_count={event.clean_count}, ids={len(event.review_ids)}"
        )
