"""Core data structures shared across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import numpy as np


EMBEDDING_DIM = 384
EMBEDDING_MODEL_VERSION = "all-MiniLM-L6-v2"


class ArchiveFilter(Enum):
    """Which entries a query may return, by archived flag."""

    ANY = "any"
    ARCHIVED_ONLY = "archived_only"
    UNARCHIVED_ONLY = "unarchived_only"

    @classmethod
    def from_include_archived(cls, include_archived: bool) -> "ArchiveFilter":
        return cls.ANY if include_archived else cls.UNARCHIVED_ONLY

    def allows(self, is_archived: bool) -> bool:
        if self is ArchiveFilter.ANY:
            return True
        if self is ArchiveFilter.ARCHIVED_ONLY:
            return is_archived
        return not is_archived


@dataclass
class JournalEntry:
    """Snapshot of a journal entry as read from the store."""

    id: str
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_archived: bool = False

    def created_iso(self) -> Optional[str]:
        """Return the creation timestamp in ISO-8601 format."""
        if self.created_at is None:
            return None
        return self.created_at.isoformat()


@dataclass
class ChunkRecord:
    """Sentence-bounded slice of an entry, embedded for fine-grained search."""

    journal_id: str
    chunk_index: int
    text: str
    embedding: Optional[np.ndarray] = None

    @property
    def id(self) -> str:
        return f"{self.journal_id}#{self.chunk_index}"


@dataclass
class RetrievalHit:
    """One channel's hit: raw score (bm25 or distance) and 1-based rank."""

    entity_id: str
    score: float
    rank: int


@dataclass
class FusedResult:
    """An entity's combined RRF score and its rank in each channel."""

    entity_id: str
    combined_score: float
    lexical_rank: Optional[int] = None
    vector_rank: Optional[int] = None


@dataclass
class SearchResult:
    """A fused hit joined with the entry it points at."""

    entry: JournalEntry
    fused: FusedResult

    @property
    def content(self) -> str:
        return self.entry.content

    @property
    def score(self) -> float:
        return self.fused.combined_score


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChatTurn:
    """Immutable conversation turn."""

    role: ChatRole
    content: str
    created_at: Optional[datetime] = None
    conversation_id: Optional[str] = None


class SafetyLevel(str, Enum):
    SAFE = "safe"
    DISTRESS = "distress"
    CRISIS = "crisis"


@dataclass(frozen=True)
class SafetyVerdict:
    """Outcome of the safety gate for one message."""

    safe: bool
    level: SafetyLevel
    intervention: Optional[str] = None


@dataclass
class EmotionScore:
    """A GoEmotions label with model confidence."""

    label: str
    score: float


@dataclass
class SourceReference:
    """Attribution for a retrieved entry that made it into a prompt."""

    entity_id: str
    date: Optional[str]
    snippet: str
    score: float


@dataclass
class ChatReply:
    """Final result of one companion turn."""

    text: str
    verdict: SafetyVerdict
    sources: list = field(default_factory=list)
    forwarded: bool = True
