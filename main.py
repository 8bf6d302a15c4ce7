"""
Review Preprocessor

CLI entry point for running the preprocessing pipeline.
"""

import argparse
import logging
import os
import signal
import sys

from preprocessor.agents.translation import build_translator
from preprocessor.models.events import PrepareRequest
from preprocessor.orchestrator import PreprocessOrchestrator
from preprocessor.utils.events import EventConsumer, EventProducer
from preprocessor.utils.storage import CleanReviewStore, RawReviewStore
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("preprocessor.log")
        ]
    )


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt(f"signal {signum}")


def build_orchestrator(data_root: str) -> PreprocessOrchestrator:
    """Wire stores, producer and translator from settings."""
    config = settings.load_processing_config()

    translator = build_translator(
        config=config,
        provider=settings.TRANSLATE_PROVIDER,
        api_key=settings.GOOGLE_API_KEY,
        primary_model=settings.TRANSLATE_MODEL,
        fallback_model=settings.TRANSLATE_FALLBACK_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        max_retries=settings.TRANSLATE_MAX_RETRIES
    )

    return PreprocessOrchestrator(
        raw_store=RawReviewStore(os.path.join(data_root, "raw")),
        clean_store=CleanReviewStore(os.path.join(data_root, "clean", "clean_reviews.json")),
        producer=EventProducer(os.path.join(data_root, "events", "prepare_completed.jsonl")),
        config=config,
        translator=translator
    )


def consume(orchestrator: PreprocessOrchestrator, events_path: str) -> int:
    """
    Handle every request in an events file.

    A failed request is logged and the loop moves on to the next event.

    Returns:
        Number of failed requests
    """
    logger = logging.getLogger(__name__)
    failures = 0
    for request in EventConsumer(events_path):
        try:
            orchestrator.handle(request)
        except Exception as e:
            failures += 1
            logger.error(f"Handle error for {request.app_id}: {e}", exc_info=True)
    return failures


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Review Preprocessor - clean, filter and translate app reviews",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Prepare January reviews for one app
  python main.py --app com.example.app --date-from 2024-01-01 --date-to 2024-01-31

  # Restrict to some countries and cap the number of rows
  python main.py --app com.example.app --countries us gb --limit 500

  # Consume a JSON Lines file of prepare requests
  python main.py --events data/events/prepare_requests.jsonl

Note: Set GOOGLE_API_KEY when PREPROCESS_TRANSLATE_PROVIDER=gemini.
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--app",
        help="Application id to prepare reviews for"
    )
    source.add_argument(
        "--events",
        help="JSON Lines file of prepare requests to consume"
    )

    parser.add_argument(
        "--countries",
        nargs="*",
        default=[],
        help="Country codes to include (default: all)"
    )

    parser.add_argument(
        "--date-from",
        default="",
        help="Start of the window (YYYY-MM-DD or RFC 3339). Defaults to the epoch"
    )

    parser.add_argument(
        "--date-to",
        default="",
        help="End of the window (YYYY-MM-DD or RFC 3339). Defaults to now"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of raw reviews to fetch"
    )

    parser.add_argument(
        "--data-root",
        default=str(settings.DATA_ROOT),
        help=f"Data directory (default: {settings.DATA_ROOT})"
    )

    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    if (
        settings.TRANSLATE_ENABLED
        and settings.TRANSLATE_PROVIDER == "gemini"
        and not settings.GOOGLE_API_KEY
    ):
        logger.error(
            "GOOGLE_API_KEY environment variable not set. "
            "Please set it before enabling Gemini translation."
        )
        sys.exit(1)

    signal.signal(signal.SIGTERM, _raise_interrupt)

    try:
        orchestrator = build_orchestrator(args.data_root)

        if args.events:
            failures = consume(orchestrator, args.events)
            if failures:
                logger.error(f"{failures} request(s) failed")
                sys.exit(1)
        else:
            request = PrepareRequest(
                app_id=args.app,
                countries=args.countries,
                date_from=args.date_from,
                date_to=args.date_to,
                limit=args.limit
            )
            completed = orchestrator.handle(request)
            logger.info(f"Prepared {completed.clean_count} contentful reviews for {args.app}")

        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("Preprocessing interrupted")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Preprocessing failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
