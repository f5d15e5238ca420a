"""Configuration loading for the journal recall engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


def _resolve_path(raw_path: str, base_dir: Path) -> str:
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)


@dataclass
class PathsConfig:
    """Filesystem locations for the journal store and vector pools."""

    sqlite_path: str = "data/journal.db"
    chroma_dir: str = "data/chroma"


@dataclass
class ChunkingConfig:
    """Sentence chunking limits, in characters."""

    max_chars: int = 500
    overlap_chars: int = 100


@dataclass
class EmbeddingConfig:
    """Embedding model and Chroma collection names."""

    model_name: str = "all-MiniLM-L6-v2"
    entry_collection: str = "journal_entries"
    chunk_collection: str = "journal_chunks"


@dataclass
class RetrievalConfig:
    """Hybrid retrieval defaults."""

    default_limit: int = 10
    rrf_k: int = 60
    max_query_chars: int = 1000
    include_archived: bool = False


@dataclass
class ContextBudget:
    """Character budgets for one outgoing prompt.

    ``system_prompt_budget``, ``rag_budget`` and ``history_budget`` are all
    carved out of ``max_context_budget``.
    """

    max_context_budget: int = 12000
    system_prompt_budget: int = 2000
    rag_budget: int = 4000
    history_budget: int = 6000
    per_turn_overhead: int = 10
    snippet_max_chars: int = 500
    rag_item_overhead: int = 50

    @property
    def available(self) -> int:
        """Characters left for history and retrieved context together."""
        return max(0, self.max_context_budget - self.system_prompt_budget)


@dataclass
class SafetyConfig:
    """Emotion-informed escalation settings."""

    emotion_threshold: float = 0.5
    risk_emotions: List[str] = field(
        default_factory=lambda: ["grief", "fear", "sadness", "nervousness", "disappointment"]
    )


@dataclass
class LLMConfig:
    """Chat companion model settings."""

    model: str = "gemini-2.5-flash"
    temperature: float = 0.7
    history_turns: int = 20
    rag_limit: int = 5
    emotion_labeling: bool = True


@dataclass
class AppConfig:
    """Top-level app configuration."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    embeddings: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    context: ContextBudget = field(default_factory=ContextBudget)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    google_api_key: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "AppConfig":
        """Build config from a dictionary."""
        base = Path.cwd() if base_dir is None else base_dir

        paths_data = data.get("paths", {})
        paths = PathsConfig(
            sqlite_path=_resolve_path(paths_data.get("sqlite_path", "data/journal.db"), base),
            chroma_dir=_resolve_path(paths_data.get("chroma_dir", "data/chroma"), base),
        )

        return cls(
            paths=paths,
            chunking=ChunkingConfig(**data.get("chunking", {})),
            embeddings=EmbeddingConfig(**data.get("embeddings", {})),
            retrieval=RetrievalConfig(**data.get("retrieval", {})),
            context=ContextBudget(**data.get("context", {})),
            safety=SafetyConfig(**data.get("safety", {})),
            llm=LLMConfig(**data.get("llm", {})),
            google_api_key=data.get("google_api_key"),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "AppConfig":
        """Load config from YAML."""
        config_path = Path(path).resolve()
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        return cls.from_dict(data, base_dir=config_path.parent)
