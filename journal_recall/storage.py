"""SQLite journal store: entries, full-text index, and chat history."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from dateutil import parser as dt_parser

from .errors import EntryNotFoundError, InvalidInputError
from .schemas import ArchiveFilter, ChatRole, ChatTurn, JournalEntry


_ENTRY_COLUMNS = "j.id, j.content, j.created_at, j.updated_at, j.is_archived"

# One fixed statement per archive filter; the filter never builds SQL text.
_FTS_QUERIES = {
    ArchiveFilter.ANY: """
        SELECT j.id, bm25(journals_fts) AS rank
        FROM journals_fts
        JOIN journals j ON j.rowid = journals_fts.rowid
        WHERE journals_fts MATCH ?
        ORDER BY rank, j.id
        LIMIT ?
    """,
    ArchiveFilter.ARCHIVED_ONLY: """
        SELECT j.id, bm25(journals_fts) AS rank
        FROM journals_fts
        JOIN journals j ON j.rowid = journals_fts.rowid
        WHERE journals_fts MATCH ? AND j.is_archived = 1
        ORDER BY rank, j.id
        LIMIT ?
    """,
    ArchiveFilter.UNARCHIVED_ONLY: """
        SELECT j.id, bm25(journals_fts) AS rank
        FROM journals_fts
        JOIN journals j ON j.rowid = journals_fts.rowid
        WHERE journals_fts MATCH ? AND j.is_archived = 0
        ORDER BY rank, j.id
        LIMIT ?
    """,
}

_LIST_QUERIES = {
    ArchiveFilter.ANY: f"SELECT {_ENTRY_COLUMNS} FROM journals j ORDER BY j.created_at DESC",
    ArchiveFilter.ARCHIVED_ONLY: (
        f"SELECT {_ENTRY_COLUMNS} FROM journals j WHERE j.is_archived = 1 ORDER BY j.created_at DESC"
    ),
    ArchiveFilter.UNARCHIVED_ONLY: (
        f"SELECT {_ENTRY_COLUMNS} FROM journals j WHERE j.is_archived = 0 ORDER BY j.created_at DESC"
    ),
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return dt_parser.parse(value)
    except (ValueError, OverflowError):
        return None


def _row_to_entry(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        id=row["id"],
        content=row["content"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
        is_archived=bool(row["is_archived"]),
    )


class SQLiteJournalStore:
    """Persists journal entries and chat turns; serves full-text queries."""

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS journals (
                    id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    is_archived INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_journals_archived ON journals(is_archived);
                CREATE INDEX IF NOT EXISTS idx_journals_created ON journals(created_at DESC);

                CREATE VIRTUAL TABLE IF NOT EXISTS journals_fts USING fts5(
                    content,
                    content='journals',
                    content_rowid='rowid'
                );

                DROP TRIGGER IF EXISTS journals_ai;
                DROP TRIGGER IF EXISTS journals_ad;
                DROP TRIGGER IF EXISTS journals_au;

                CREATE TRIGGER journals_ai AFTER INSERT ON journals BEGIN
                    INSERT INTO journals_fts(rowid, content) VALUES (NEW.rowid, NEW.content);
                END;
                CREATE TRIGGER journals_ad AFTER DELETE ON journals BEGIN
                    INSERT INTO journals_fts(journals_fts, rowid, content)
                    VALUES ('delete', OLD.rowid, OLD.content);
                END;
                CREATE TRIGGER journals_au AFTER UPDATE OF content ON journals BEGIN
                    INSERT INTO journals_fts(journals_fts, rowid, content)
                    VALUES ('delete', OLD.rowid, OLD.content);
                    INSERT INTO journals_fts(rowid, content) VALUES (NEW.rowid, NEW.content);
                END;

                CREATE TABLE IF NOT EXISTS chat_messages (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_chat_conversation ON chat_messages(conversation_id, seq);
                """
            )
            self.conn.commit()

    # -- entries ---------------------------------------------------------

    def add_entry(
        self,
        content: str,
        created_at: Optional[datetime] = None,
        entry_id: Optional[str] = None,
        is_archived: bool = False,
    ) -> JournalEntry:
        if not content.strip():
            raise InvalidInputError("Journal entry content cannot be empty")
        entry_id = entry_id or str(uuid.uuid4())
        stamp = created_at.isoformat() if created_at else _utc_now()
        with self._lock:
            self.conn.execute(
                "INSERT INTO journals (id, content, created_at, updated_at, is_archived) VALUES (?, ?, ?, ?, ?)",
                (entry_id, content, stamp, stamp, int(is_archived)),
            )
            self.conn.commit()
        return self.get_entry(entry_id)

    def update_entry(self, entry_id: str, content: str) -> JournalEntry:
        with self._lock:
            cur = self.conn.execute(
                "UPDATE journals SET content = ?, updated_at = ? WHERE id = ?",
                (content, _utc_now(), entry_id),
            )
            self.conn.commit()
        if cur.rowcount == 0:
            raise EntryNotFoundError(entry_id)
        return self.get_entry(entry_id)

    def set_archived(self, entry_id: str, archived: bool = True) -> JournalEntry:
        with self._lock:
            cur = self.conn.execute(
                "UPDATE journals SET is_archived = ?, updated_at = ? WHERE id = ?",
                (int(archived), _utc_now(), entry_id),
            )
            self.conn.commit()
        if cur.rowcount == 0:
            raise EntryNotFoundError(entry_id)
        return self.get_entry(entry_id)

    def delete_entry(self, entry_id: str) -> bool:
        with self._lock:
            cur = self.conn.execute("DELETE FROM journals WHERE id = ?", (entry_id,))
            self.conn.commit()
        return cur.rowcount > 0

    def get_entry(self, entry_id: str) -> JournalEntry:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM journals j WHERE j.id = ?",
                (entry_id,),
            ).fetchone()
        if row is None:
            raise EntryNotFoundError(entry_id)
        return _row_to_entry(row)

    def fetch_entries(self, ids: Iterable[str]) -> Dict[str, JournalEntry]:
        """Return the entries that exist among ``ids``; missing ids are absent."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        with self._lock:
            rows = self.conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM journals j WHERE j.id IN ({placeholders})",
                ids,
            ).fetchall()
        return {row["id"]: _row_to_entry(row) for row in rows}

    def list_entries(self, archive_filter: ArchiveFilter = ArchiveFilter.ANY) -> List[JournalEntry]:
        with self._lock:
            rows = self.conn.execute(_LIST_QUERIES[archive_filter]).fetchall()
        return [_row_to_entry(row) for row in rows]

    def count(self) -> int:
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) AS n FROM journals").fetchone()
        return int(row["n"]) if row else 0

    # -- full-text -------------------------------------------------------

    def search_fts(
        self,
        match_query: str,
        limit: int,
        archive_filter: ArchiveFilter = ArchiveFilter.UNARCHIVED_ONLY,
    ) -> List[Tuple[str, float]]:
        """Run an FTS5 MATCH; returns ``(id, bm25)`` with best matches first."""
        with self._lock:
            rows = self.conn.execute(
                _FTS_QUERIES[archive_filter],
                (match_query, max(1, limit)),
            ).fetchall()
        return [(row["id"], float(row["rank"])) for row in rows]

    # -- chat history ----------------------------------------------------

    def append_turn(self, conversation_id: str, role: ChatRole, content: str) -> ChatTurn:
        role = ChatRole(role)
        stamp = _utc_now()
        with self._lock:
            self.conn.execute(
                "INSERT INTO chat_messages (id, conversation_id, role, content, created_at) VALUES (?, ?, ?, ?, ?)",
                (str(uuid.uuid4()), conversation_id, role.value, content, stamp),
            )
            self.conn.commit()
        return ChatTurn(role=role, content=content, created_at=_parse_ts(stamp), conversation_id=conversation_id)

    def fetch_recent_history(self, conversation_id: str, n: int) -> List[ChatTurn]:
        """Most recent ``n`` turns of a conversation, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT role, content, created_at, conversation_id
                FROM chat_messages
                WHERE conversation_id = ?
                ORDER BY seq DESC
                LIMIT ?
                """,
                (conversation_id, n),
            ).fetchall()
        turns = [
            ChatTurn(
                role=ChatRole(row["role"]),
                content=row["content"],
                created_at=_parse_ts(row["created_at"]),
                conversation_id=row["conversation_id"],
            )
            for row in rows
        ]
        turns.reverse()
        return turns

    def clear_history(self, conversation_id: str) -> int:
        with self._lock:
            cur = self.conn.execute("DELETE FROM chat_messages WHERE conversation_id = ?", (conversation_id,))
            self.conn.commit()
        return cur.rowcount

    def close(self) -> None:
        self.conn.close()
