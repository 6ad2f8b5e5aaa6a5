"""
CLI commands - entry points for the pipeline processes.

Each command follows a consistent pattern:
1. Parse arguments
2. Load environment and configure logging
3. Run the process until it is signalled to stop
4. Return exit code

Startup failures (queue cannot be resolved, store unreachable) return 1.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import threading

from dotenv import load_dotenv

from tripstreamer.config import get_settings
from tripstreamer.core.errors import QueueUnavailable, ValidationFailure
from tripstreamer.observability import init_tracing, shutdown_tracing

logger = logging.getLogger("tripstreamer.cli")


def _load_env() -> None:
    """Load environment variables from .env file."""
    load_dotenv()


def _configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def _run_until_signalled(main) -> None:
    """Run ``main(stop_event)`` with SIGINT/SIGTERM wired to the stop event."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    await main(stop_event)


def run_produce_cli() -> int:
    """CLI entry point for the deal producer."""
    from tripstreamer.pipeline.producer import run_producer

    parser = argparse.ArgumentParser(description="Publish synthetic deals to Kafka")
    parser.add_argument("--interval-ms", type=int, help="Override PRODUCE_INTERVAL_MS")
    args = parser.parse_args()

    settings = get_settings()
    if args.interval_ms is not None:
        settings.producer.interval_ms = args.interval_ms

    init_tracing()
    try:
        asyncio.run(_run_until_signalled(lambda stop: run_producer(settings, stop)))
    except Exception:
        logger.exception("Producer failed")
        return 1
    finally:
        shutdown_tracing()
    return 0


def run_bridge_cli() -> int:
    """CLI entry point for the Kafka → SQS bridge."""
    from tripstreamer.pipeline.bridge import run_bridge

    parser = argparse.ArgumentParser(description="Bridge eligible deals from Kafka to SQS")
    parser.add_argument("--threshold", type=float, help="Override MAX_ALERT_PRICE")
    args = parser.parse_args()

    settings = get_settings()
    if args.threshold is not None:
        settings.bridge.price_threshold = args.threshold

    init_tracing()
    try:
        asyncio.run(_run_until_signalled(lambda stop: run_bridge(settings, stop)))
    except QueueUnavailable as e:
        logger.error(f"Fatal: {e}")
        return 1
    except Exception:
        logger.exception("Bridge failed")
        return 1
    finally:
        shutdown_tracing()
    return 0


def run_worker_cli() -> int:
    """CLI entry point for the SQS persistence worker."""
    from tripstreamer.pipeline.worker import build_worker

    parser = argparse.ArgumentParser(description="Persist queued deals")
    parser.parse_args()

    init_tracing()
    try:
        worker, close = build_worker()
    except QueueUnavailable as e:
        logger.error(f"Fatal: {e}")
        shutdown_tracing()
        return 1
    except Exception:
        logger.exception("Worker startup failed")
        shutdown_tracing()
        return 1

    stop_event = threading.Event()

    def _stop(signum, frame):
        logger.info(f"Received signal {signum}, finishing in-flight batch")
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    try:
        worker.run(stop_event)
    finally:
        close()
        shutdown_tracing()
    return 0


def run_serve_cli() -> int:
    """CLI entry point for the retrieval HTTP API."""
    import uvicorn

    from tripstreamer.retrieval.api import build_app_from_settings

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Serve the retrieval API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=settings.retrieval.port)
    args = parser.parse_args()

    init_tracing()
    try:
        uvicorn.run(build_app_from_settings(), host=args.host, port=args.port)
    finally:
        shutdown_tracing()
    return 0


def run_ingest_cli() -> int:
    """CLI entry point: ingest one document directly into the store."""
    from tripstreamer.retrieval.service import get_retrieval_service

    parser = argparse.ArgumentParser(description="Ingest a retrieval document")
    parser.add_argument("text", help="Document text (at least 10 characters)")
    parser.add_argument("--source", default="unknown")
    parser.add_argument("--id", dest="doc_id")
    parser.add_argument("--metadata", type=json.loads, default=None, help="JSON object")
    args = parser.parse_args()

    service = get_retrieval_service(use_postgres=True)
    try:
        doc_id = service.ingest(args.source, args.text, metadata=args.metadata, doc_id=args.doc_id)
    except ValidationFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps({"status": "ok", "id": doc_id}))
    return 0


def run_query_cli() -> int:
    """CLI entry point: answer a prompt from the store."""
    from tripstreamer.retrieval.service import DEFAULT_TOP_K, get_retrieval_service

    parser = argparse.ArgumentParser(description="Query retrieval documents")
    parser.add_argument("prompt", help="Free-text question (at least 5 characters)")
    parser.add_argument("--top-k", type=int, default=DEFAULT_TOP_K)
    parser.add_argument("--json", action="store_true", help="Print the full JSON result")
    args = parser.parse_args()

    service = get_retrieval_service(use_postgres=True)
    try:
        result = service.query(args.prompt, args.top_k)
    except ValidationFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.synthesized_response)
    return 0


def main() -> int:
    """
    Main CLI entry point with subcommands.

    Usage:
        tripstreamer produce   # Publish synthetic deals to Kafka
        tripstreamer bridge    # Kafka → SQS with the price filter
        tripstreamer worker    # SQS → Postgres/Redis/retrieval
        tripstreamer serve     # Retrieval HTTP API
        tripstreamer ingest    # Ingest one document
        tripstreamer query     # Ask a question
    """
    _load_env()
    _configure_logging()

    parser = argparse.ArgumentParser(
        description="Tripstreamer deal pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  produce   Publish synthetic deals to the event stream
  bridge    Forward eligible deals from the stream to the queue
  worker    Persist queued deals and refresh caches
  serve     Run the retrieval HTTP API
  ingest    Ingest a single document
  query     Query stored documents

Examples:
  tripstreamer bridge --threshold 400
  tripstreamer query "cheap Tokyo flight" --top-k 1
        """,
    )

    parser.add_argument(
        "command",
        choices=["produce", "bridge", "worker", "serve", "ingest", "query"],
        help="Process to run",
    )

    # Parse just the command first
    args, remaining = parser.parse_known_args()

    commands = {
        "produce": run_produce_cli,
        "bridge": run_bridge_cli,
        "worker": run_worker_cli,
        "serve": run_serve_cli,
        "ingest": run_ingest_cli,
        "query": run_query_cli,
    }

    # Re-inject remaining args for the subcommand
    sys.argv = [sys.argv[0]] + remaining

    try:
        return commands[args.command]()
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
