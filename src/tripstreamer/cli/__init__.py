"""
CLI module - unified command-line interface.

Provides entry points for:
- The producer, bridge and worker processes
- The retrieval HTTP API
- One-off ingest and query commands
"""

from tripstreamer.cli.commands import (
    main,
    run_produce_cli,
    run_bridge_cli,
    run_worker_cli,
    run_serve_cli,
    run_ingest_cli,
    run_query_cli,
)

__all__ = [
    "main",
    "run_produce_cli",
    "run_bridge_cli",
    "run_worker_cli",
    "run_serve_cli",
    "run_ingest_cli",
    "run_query_cli",
]
