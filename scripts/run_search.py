"""CLI entrypoint for hybrid search over the journal."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from journal_recall.config import AppConfig  # noqa: E402
from journal_recall.pipeline import JournalRecallPipeline  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search journal entries with lexical + semantic fusion.")
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "config.yaml"),
        help="Path to YAML config.",
    )
    parser.add_argument("query", help="Free-text query.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of results.")
    parser.add_argument(
        "--include-archived",
        action="store_true",
        help="Also return archived entries.",
    )
    parser.add_argument(
        "--backfill",
        action="store_true",
        help="Embed entries with missing or outdated vectors before searching.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = AppConfig.from_yaml(args.config)
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    pipeline = JournalRecallPipeline(config)

    if args.backfill:
        queued = pipeline.backfill_embeddings()
        print(f"Embedding {queued} entries...")
        pipeline.worker.join()

    results = pipeline.search(args.query, limit=args.limit, include_archived=args.include_archived)
    if not results:
        print("No matching entries.")
    for i, result in enumerate(results, start=1):
        preview = " ".join(result.entry.content.split()[:30]).strip()
        print(
            f"{i}. score={result.score:.4f} lexical={result.fused.lexical_rank} "
            f"vector={result.fused.vector_rank} date={result.entry.created_iso()}\n   {preview}"
        )
    pipeline.close()


if __name__ == "__main__":
    main()
