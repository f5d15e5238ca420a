"""Tests for the SQLite journal store."""

from datetime import timedelta

import pytest

from journal_recall.errors import EntryNotFoundError, InvalidInputError
from journal_recall.schemas import ArchiveFilter, ChatRole
from journal_recall.storage import SQLiteJournalStore


class TestEntries:
    """Entry CRUD."""

    def test_add_and_get(self, store, base_time):
        entry = store.add_entry("Rained all day.", created_at=base_time, entry_id="e1")
        fetched = store.get_entry("e1")
        assert fetched.id == entry.id == "e1"
        assert fetched.content == "Rained all day."
        assert fetched.created_at == base_time
        assert fetched.is_archived is False

    def test_generated_id(self, store):
        entry = store.add_entry("No id given")
        assert entry.id
        assert store.get_entry(entry.id).content == "No id given"

    def test_empty_content_rejected(self, store):
        with pytest.raises(InvalidInputError):
            store.add_entry("   ")

    def test_get_missing(self, store):
        with pytest.raises(EntryNotFoundError):
            store.get_entry("nope")

    def test_update(self, store):
        store.add_entry("first draft", entry_id="e1")
        updated = store.update_entry("e1", "second draft")
        assert updated.content == "second draft"

    def test_update_missing(self, store):
        with pytest.raises(EntryNotFoundError):
            store.update_entry("nope", "text")

    def test_set_archived(self, store):
        store.add_entry("old thoughts", entry_id="e1")
        assert store.set_archived("e1").is_archived is True
        assert store.set_archived("e1", archived=False).is_archived is False

    def test_delete(self, store):
        store.add_entry("to delete", entry_id="e1")
        assert store.delete_entry("e1") is True
        assert store.delete_entry("e1") is False
        assert store.count() == 0

    def test_fetch_entries_skips_missing(self, corpus, store):
        found = store.fetch_entries(["sunshine", "ghost", "anxious", "sunshine"])
        assert set(found) == {"sunshine", "anxious"}

    def test_fetch_entries_empty(self, store):
        assert store.fetch_entries([]) == {}

    def test_list_entries_filters(self, corpus, store):
        assert [e.id for e in store.list_entries(ArchiveFilter.ARCHIVED_ONLY)] == ["archived"]
        unarchived = store.list_entries(ArchiveFilter.UNARCHIVED_ONLY)
        assert [e.id for e in unarchived] == ["sunshine", "anxious", "good_day"]
        assert len(store.list_entries()) == 4

    def test_reopen_persists(self, tmp_path, base_time):
        path = str(tmp_path / "nested" / "journal.db")
        first = SQLiteJournalStore(path)
        first.add_entry("persisted", created_at=base_time, entry_id="p1")
        first.close()

        second = SQLiteJournalStore(path)
        try:
            assert second.get_entry("p1").content == "persisted"
            assert [row[0] for row in second.search_fts('"persisted"*', 5)] == ["p1"]
        finally:
            second.close()


class TestFullText:
    def test_index_follows_updates(self, store):
        store.add_entry("walked along the canal", entry_id="e1")
        store.update_entry("e1", "stayed home reading")
        assert store.search_fts('"canal"*', 10) == []
        assert [row[0] for row in store.search_fts('"reading"*', 10)] == ["e1"]

    def test_index_follows_deletes(self, store):
        store.add_entry("walked along the canal", entry_id="e1")
        store.delete_entry("e1")
        assert store.search_fts('"canal"*', 10) == []

    def test_archive_filters(self, corpus, store):
        query = '"morning"*'
        assert [r[0] for r in store.search_fts(query, 10, ArchiveFilter.UNARCHIVED_ONLY)] == ["sunshine"]
        assert [r[0] for r in store.search_fts(query, 10, ArchiveFilter.ARCHIVED_ONLY)] == ["archived"]
        assert {r[0] for r in store.search_fts(query, 10, ArchiveFilter.ANY)} == {"sunshine", "archived"}

    def test_bm25_best_first(self, corpus, store):
        rows = store.search_fts('"good"*', 10, ArchiveFilter.ANY)
        scores = [score for _, score in rows]
        assert scores == sorted(scores)


class TestChatHistory:
    """Conversation turns."""

    def test_recent_history_chronological(self, store):
        for i in range(5):
            role = ChatRole.USER if i % 2 == 0 else ChatRole.ASSISTANT
            store.append_turn("c1", role, f"turn {i}")
        turns = store.fetch_recent_history("c1", 3)
        assert [t.content for t in turns] == ["turn 2", "turn 3", "turn 4"]
        assert turns[0].role is ChatRole.USER
        assert turns[1].role is ChatRole.ASSISTANT

    def test_conversations_isolated(self, store):
        store.append_turn("c1", ChatRole.USER, "one")
        store.append_turn("c2", ChatRole.USER, "two")
        assert [t.content for t in store.fetch_recent_history("c1", 10)] == ["one"]

    def test_zero_turns(self, store):
        store.append_turn("c1", ChatRole.USER, "one")
        assert store.fetch_recent_history("c1", 0) == []

    def test_role_from_string(self, store):
        turn = store.append_turn("c1", "assistant", "hello")
        assert turn.role is ChatRole.ASSISTANT
        assert turn.created_at is not None

    def test_clear_history(self, store):
        store.append_turn("c1", ChatRole.USER, "one")
        store.append_turn("c1", ChatRole.ASSISTANT, "two")
        assert store.clear_history("c1") == 2
        assert store.fetch_recent_history("c1", 10) == []


def test_in_memory_store(base_time):
    mem = SQLiteJournalStore(":memory:")
    try:
        mem.add_entry("ephemeral", created_at=base_time - timedelta(days=1), entry_id="m1")
        assert mem.count() == 1
    finally:
        mem.close()
