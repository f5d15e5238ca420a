"""Local-first hybrid retrieval and context assembly for a private journal."""

from .config import AppConfig
from .pipeline import JournalRecallPipeline

__all__ = ["AppConfig", "JournalRecallPipeline"]
