"""End-to-end demo: write entries -> embed in background -> search -> chat."""

from __future__ import annotations

import logging
import sys
import uuid
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from journal_recall.config import AppConfig  # noqa: E402
from journal_recall.pipeline import JournalRecallPipeline  # noqa: E402


DEMO_ENTRIES = [
    "Today was a good day. I walked to the bakery on 7th street and the light was soft.",
    "Feeling anxious about tomorrow. The review is at nine and I keep rehearsing what to say.",
    "Good morning sunshine. Coffee on the balcony before anyone else was awake.",
    (
        "Long week. Monday started slow and I barely spoke to anyone. "
        "Tuesday my sister called and we laughed about the old apartment. "
        "By Thursday I noticed I was sleeping better. "
        "Friday I finally finished the chapter I had been avoiding for a month."
    ),
]


def main() -> None:
    config_path = PROJECT_ROOT / "config.yaml"
    config = AppConfig.from_yaml(str(config_path))
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    pipeline = JournalRecallPipeline(config)

    if pipeline.store.count() == 0:
        for text in DEMO_ENTRIES:
            pipeline.add_entry(text)
    pipeline.backfill_embeddings()
    pipeline.worker.join()

    print("== Store Stats ==")
    for key, value in pipeline.stats().items():
        print(f"{key}: {value}")

    query = "good morning"
    print(f"\n== Search: {query!r} ==")
    for i, result in enumerate(pipeline.search(query, limit=4), start=1):
        preview = " ".join(result.entry.content.split()[:20]).strip()
        print(
            f"{i}. score={result.score:.4f} lexical={result.fused.lexical_rank} "
            f"vector={result.fused.vector_rank}\n   {preview}"
        )

    conversation_id = str(uuid.uuid4())
    print("\n== Chat ==")
    for message in ["How have my mornings been lately?", "Honestly I feel hopeless about the review."]:
        print(f"> {message}")
        reply = pipeline.chat(conversation_id, message)
        print(f"[{reply.verdict.level.value}] {reply.text}")
        for src in reply.sources:
            print(f"   source {src.entity_id} ({src.date}) score={src.score:.4f}")

    pipeline.close()


if __name__ == "__main__":
    main()
