"""
Command-line entry point: embed a JSONL file of records.

Each input line is a JSON object with ``content`` (or ``text``) and an
optional ``id``. Each output line is the corresponding outcome
(``record``, ``embedding``, ``degraded``, optional ``error``/``skipped``),
in input order. A summary is logged at the end.

Usage:
    resilient-embed records.jsonl -o embeddings.jsonl --provider openai
    resilient-embed records.jsonl -o out.jsonl --idempotency-key sync-2024-05-01
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .config import Config, PipelineConfig
from .db.connection import DatabaseConnection
from .providers.factory import EmbeddingProviderFactory
from .services.error_reporter import ErrorReporter
from .services.idempotency import IdempotencyCoordinator
from .services.idempotency_store import (
    FileIdempotencyStore,
    IdempotencyStore,
    SQLAlchemyIdempotencyStore,
)
from .services.pipeline import DynamicBatchEmbeddingPipeline
from .services.records import (
    EmbeddableRecord,
    EmbeddingOutcome,
    outcomes_from_dicts,
    outcomes_to_dicts,
    summarize_outcomes,
)
from .utils.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def read_records(path: Path) -> List[EmbeddableRecord]:
    """Parse a JSONL file into records; blank lines are ignored."""
    records = []
    with path.open("r", encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(EmbeddableRecord.from_dict(json.loads(line)))
            except (ValueError, AttributeError) as e:
                raise ValueError(f"{path}:{line_no}: invalid record: {e}") from e
    return records


def write_outcomes(path: Optional[Path], outcomes: List[EmbeddingOutcome]) -> None:
    """Write outcomes as JSONL to *path*, or stdout when *path* is None."""
    lines = (json.dumps(o.to_dict(), ensure_ascii=False) for o in outcomes)
    if path is None:
        for line in lines:
            sys.stdout.write(line + "\n")
        return
    with path.open("w", encoding="utf-8") as fh:
        for line in lines:
            fh.write(line + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resilient-embed",
        description="Embed JSONL records with adaptive batching, retry and idempotency",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("input", type=Path, help="JSONL file of records")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output JSONL file (stdout if omitted)",
    )
    parser.add_argument(
        "--provider", default="openai_compatible",
        help="Provider name: azure, openai, openai_compatible",
    )
    parser.add_argument(
        "--idempotency-key", default=None,
        help="Run at most once under this key",
    )
    parser.add_argument(
        "--database-url", default=None,
        help="Idempotency/error-log database (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--cache-dir", default=None,
        help="Directory for file-based idempotency state when no database is set",
    )
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument("--max-batch-size", type=int, default=None)
    parser.add_argument("--max-payload-bytes", type=int, default=None)
    parser.add_argument("--max-concurrency", type=int, default=None)
    parser.add_argument("--log-level", default=None)
    return parser


def _pipeline_config(args: argparse.Namespace, base: PipelineConfig) -> PipelineConfig:
    overrides = {
        "max_retries": args.max_retries,
        "max_batch_size": args.max_batch_size,
        "max_payload_bytes": args.max_payload_bytes,
        "max_concurrency": args.max_concurrency,
    }
    return replace(base, **{k: v for k, v in overrides.items() if v is not None})


async def run(args: argparse.Namespace, app_config: Optional[Config] = None) -> int:
    app_config = app_config or Config()
    pipeline_config = _pipeline_config(args, app_config.pipeline)

    database_url = args.database_url or app_config.database.connection_string
    db = DatabaseConnection(database_url) if database_url else None
    if db is not None:
        db.init_db()
    reporter = ErrorReporter(db=db)

    store: Optional[IdempotencyStore] = None
    if args.idempotency_key:
        if db is not None:
            store = SQLAlchemyIdempotencyStore(db, init_db=False)
        else:
            store = FileIdempotencyStore(args.cache_dir or app_config.idempotency_cache_dir)

    records = read_records(args.input)
    provider = EmbeddingProviderFactory(app_config).create_from_config(args.provider)
    async with provider:
        pipeline = DynamicBatchEmbeddingPipeline(provider, pipeline_config, reporter=reporter)
        if args.idempotency_key:
            coordinator = IdempotencyCoordinator(store, reporter=reporter)
            outcomes = await coordinator.run(
                args.idempotency_key,
                lambda: pipeline.process(records),
                operation_name="embed_jsonl",
                serialize=outcomes_to_dicts,
                deserialize=outcomes_from_dicts,
            )
        else:
            outcomes = await pipeline.process(records)

    write_outcomes(args.output, outcomes)
    summary = summarize_outcomes(outcomes)
    logger.info("Summary: %s", json.dumps(summary))
    return 1 if summary["degraded"] else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
