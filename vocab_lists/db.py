from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from vocab_lists.models import (
    MASTERED_POINT,
    ContentItem,
    ListMembership,
    Word,
    WordList,
    normalize_word,
)

MAX_EXAMPLES = 10

SCHEMA = """
CREATE TABLE IF NOT EXISTS word_lists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    context TEXT DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS words (
    id TEXT PRIMARY KEY,
    value TEXT NOT NULL UNIQUE,
    definition TEXT DEFAULT '',
    phonetic TEXT DEFAULT '',
    dictionary_json TEXT DEFAULT '[]',
    examples_json TEXT DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS list_memberships (
    word_id TEXT NOT NULL,
    list_id TEXT NOT NULL,
    meaning TEXT DEFAULT '',
    learned_point INTEGER DEFAULT 0,
    added_at TEXT NOT NULL,
    PRIMARY KEY (word_id, list_id)
);

CREATE INDEX IF NOT EXISTS idx_memberships_list ON list_memberships(list_id);

CREATE TABLE IF NOT EXISTS content_items (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    list_id TEXT NOT NULL,
    word_id TEXT,
    word TEXT NOT NULL,
    type TEXT NOT NULL,
    question TEXT NOT NULL,
    options_json TEXT,
    option_labels_json TEXT,
    correct_answer_json TEXT NOT NULL,
    difficulty TEXT DEFAULT 'medium',
    hint TEXT DEFAULT '',
    feedback TEXT DEFAULT '',
    pairs_json TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_content_list_kind ON content_items(list_id, kind);

CREATE TABLE IF NOT EXISTS dictionary (
    word TEXT PRIMARY KEY,
    entries_json TEXT NOT NULL,
    source TEXT DEFAULT 'Merriam-Webster',
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS dictionary_stems (
    stem TEXT PRIMARY KEY,
    word TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audio_cache (
    cache_key TEXT PRIMARY KEY,
    file_path TEXT NOT NULL,
    tts_provider TEXT,
    created_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _dumps_or_none(value) -> str | None:
    return None if value is None else json.dumps(value)


def _loads_or_none(value: str | None):
    return None if value is None else json.loads(value)


def _row_to_list(row: sqlite3.Row) -> WordList:
    return WordList(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        context=row["context"] or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_content_item(row: sqlite3.Row) -> ContentItem:
    return ContentItem(
        id=row["id"],
        kind=row["kind"],
        list_id=row["list_id"],
        word=row["word"],
        type=row["type"],
        question=row["question"],
        correct_answer=json.loads(row["correct_answer_json"]),
        difficulty=row["difficulty"] or "medium",
        options=_loads_or_none(row["options_json"]),
        option_labels=_loads_or_none(row["option_labels_json"]),
        hint=row["hint"] or "",
        feedback=row["feedback"] or "",
        word_id=row["word_id"],
        pairs=_loads_or_none(row["pairs_json"]),
    )


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Lists ─────────────────────────────────────────────────────────────

    def create_list(self, name: str, description: str = "", context: str = "") -> WordList:
        now = _now()
        list_id = _new_id()
        self.conn.execute(
            "INSERT INTO word_lists (id, name, description, context, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (list_id, name, description, context, now, now),
        )
        self.conn.commit()
        return WordList(list_id, name, description, context, now, now)

    def get_list(self, list_id: str) -> WordList | None:
        row = self.conn.execute(
            "SELECT * FROM word_lists WHERE id = ?", (list_id,)
        ).fetchone()
        return _row_to_list(row) if row else None

    def get_all_lists(self) -> list[WordList]:
        rows = self.conn.execute(
            "SELECT * FROM word_lists ORDER BY created_at DESC"
        ).fetchall()
        return [_row_to_list(r) for r in rows]

    def update_list(
        self,
        list_id: str,
        name: str | None = None,
        description: str | None = None,
        context: str | None = None,
    ) -> WordList | None:
        current = self.get_list(list_id)
        if current is None:
            return None
        self.conn.execute(
            "UPDATE word_lists SET name=?, description=?, context=?, updated_at=? WHERE id=?",
            (
                name if name is not None else current.name,
                description if description is not None else current.description,
                context if context is not None else current.context,
                _now(),
                list_id,
            ),
        )
        self.conn.commit()
        return self.get_list(list_id)

    def touch_list(self, list_id: str) -> None:
        self.conn.execute(
            "UPDATE word_lists SET updated_at = ? WHERE id = ?", (_now(), list_id)
        )
        self.conn.commit()

    def delete_list(self, list_id: str) -> dict | None:
        """Delete a list and everything that hangs off it.

        Pulls the list's memberships from every word, deletes words left with
        no memberships, then removes the list's exercises and quizzes.
        Returns counts, or ``None`` if the list does not exist.
        """
        if self.get_list(list_id) is None:
            return None
        cur = self.conn.execute(
            "DELETE FROM list_memberships WHERE list_id = ?", (list_id,)
        )
        memberships_removed = cur.rowcount
        orphans = self._delete_orphaned_words()
        self.conn.execute("DELETE FROM word_lists WHERE id = ?", (list_id,))
        cur = self.conn.execute(
            "DELETE FROM content_items WHERE list_id = ?", (list_id,)
        )
        content_deleted = cur.rowcount
        self.conn.commit()
        return {
            "memberships_removed": memberships_removed,
            "words_deleted": orphans,
            "content_deleted": content_deleted,
        }

    def _delete_orphaned_words(self) -> int:
        cur = self.conn.execute(
            "DELETE FROM words WHERE id NOT IN "
            "(SELECT DISTINCT word_id FROM list_memberships)"
        )
        return cur.rowcount

    def get_list_summary(self, list_id: str) -> dict:
        row = self.conn.execute(
            "SELECT COUNT(*) AS word_count, "
            "COALESCE(SUM(COALESCE(learned_point, 0)), 0) AS total_points, "
            "COALESCE(SUM(CASE WHEN learned_point >= ? THEN 1 ELSE 0 END), 0) AS mastered "
            "FROM list_memberships WHERE list_id = ?",
            (MASTERED_POINT, list_id),
        ).fetchone()
        count = row["word_count"]
        return {
            "word_count": count,
            "average_progress": round(row["total_points"] / count) if count else 0,
            "mastered_words": row["mastered"],
        }

    # ── Words ─────────────────────────────────────────────────────────────

    def create_word(
        self,
        value: str,
        definition: str = "",
        phonetic: str = "",
        dictionary: list[dict] | None = None,
    ) -> Word:
        now = _now()
        word_id = _new_id()
        normalized = normalize_word(value)
        self.conn.execute(
            "INSERT INTO words (id, value, definition, phonetic, dictionary_json, "
            "examples_json, created_at, updated_at) VALUES (?, ?, ?, ?, ?, '[]', ?, ?)",
            (word_id, normalized, definition, phonetic,
             json.dumps(dictionary or []), now, now),
        )
        self.conn.commit()
        return Word(
            id=word_id,
            value=normalized,
            definition=definition,
            phonetic=phonetic,
            dictionary=dictionary or [],
        )

    def _build_word(self, row: sqlite3.Row) -> Word:
        memberships = self.conn.execute(
            "SELECT list_id, meaning, learned_point FROM list_memberships "
            "WHERE word_id = ? ORDER BY added_at, rowid",
            (row["id"],),
        ).fetchall()
        return Word(
            id=row["id"],
            value=row["value"],
            memberships=[
                ListMembership(m["list_id"], m["meaning"] or "", m["learned_point"] or 0)
                for m in memberships
            ],
            definition=row["definition"] or "",
            phonetic=row["phonetic"] or "",
            dictionary=json.loads(row["dictionary_json"] or "[]"),
            examples=json.loads(row["examples_json"] or "[]"),
        )

    def get_word(self, word_id: str) -> Word | None:
        row = self.conn.execute(
            "SELECT * FROM words WHERE id = ?", (word_id,)
        ).fetchone()
        return self._build_word(row) if row else None

    def get_word_by_value(self, value: str) -> Word | None:
        row = self.conn.execute(
            "SELECT * FROM words WHERE value = ?", (normalize_word(value),)
        ).fetchone()
        return self._build_word(row) if row else None

    def get_word_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM words").fetchone()
        return row[0]

    def get_list_words(self, list_id: str) -> list[dict]:
        """Words in a list, flattened with their list-specific meaning and points."""
        rows = self.conn.execute("""
            SELECT w.id, w.value, w.definition, w.phonetic, w.dictionary_json,
                   w.created_at, w.updated_at,
                   m.meaning, m.learned_point
            FROM list_memberships m
            JOIN words w ON w.id = m.word_id
            WHERE m.list_id = ?
            ORDER BY m.added_at, m.rowid
        """, (list_id,)).fetchall()
        words = []
        for r in rows:
            d = dict(r)
            d["dictionary"] = json.loads(d.pop("dictionary_json") or "[]")
            d["meaning"] = d["meaning"] or ""
            d["learned_point"] = d["learned_point"] or 0
            words.append(d)
        return words

    def count_list_words(self, list_id: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM list_memberships WHERE list_id = ?", (list_id,)
        ).fetchone()
        return row[0]

    def find_list_word_by_value(self, list_id: str, value: str) -> dict | None:
        row = self.conn.execute("""
            SELECT w.id, w.value FROM words w
            JOIN list_memberships m ON m.word_id = w.id
            WHERE m.list_id = ? AND w.value = ?
        """, (list_id, normalize_word(value))).fetchone()
        return dict(row) if row else None

    def update_word_dictionary(self, word_id: str, dictionary: list[dict]) -> None:
        self.conn.execute(
            "UPDATE words SET dictionary_json = ?, updated_at = ? WHERE id = ?",
            (json.dumps(dictionary), _now(), word_id),
        )
        self.conn.commit()

    # ── Memberships ───────────────────────────────────────────────────────

    def add_membership(
        self, word_id: str, list_id: str, meaning: str = "", learned_point: int = 0
    ) -> bool:
        """Attach a word to a list. Returns False if it was already attached."""
        cur = self.conn.execute(
            "INSERT OR IGNORE INTO list_memberships "
            "(word_id, list_id, meaning, learned_point, added_at) VALUES (?, ?, ?, ?, ?)",
            (word_id, list_id, meaning, learned_point, _now()),
        )
        self.conn.commit()
        return cur.rowcount == 1

    def remove_membership(self, word_id: str, list_id: str) -> bool:
        """Detach a word from a list, deleting the word if it is now orphaned.

        Returns True when the word itself was deleted.
        """
        self.conn.execute(
            "DELETE FROM list_memberships WHERE word_id = ? AND list_id = ?",
            (word_id, list_id),
        )
        remaining = self.conn.execute(
            "SELECT COUNT(*) FROM list_memberships WHERE word_id = ?", (word_id,)
        ).fetchone()[0]
        deleted = False
        if remaining == 0:
            self.conn.execute("DELETE FROM words WHERE id = ?", (word_id,))
            deleted = True
        self.conn.commit()
        return deleted

    def get_memberships(self, list_id: str, word_ids: list[str]) -> dict[str, int]:
        """Current learned points for *word_ids* in *list_id*.

        Words without a membership in the list are absent from the result.
        """
        if not word_ids:
            return {}
        placeholders = ",".join("?" * len(word_ids))
        rows = self.conn.execute(
            f"SELECT word_id, learned_point FROM list_memberships "
            f"WHERE list_id = ? AND word_id IN ({placeholders})",
            (list_id, *word_ids),
        ).fetchall()
        return {r["word_id"]: r["learned_point"] or 0 for r in rows}

    def set_learned_point(self, word_id: str, list_id: str, point: int) -> None:
        self.conn.execute(
            "UPDATE list_memberships SET learned_point = ? "
            "WHERE word_id = ? AND list_id = ?",
            (point, word_id, list_id),
        )
        self.conn.commit()

    # ── Examples ──────────────────────────────────────────────────────────

    def add_examples(self, word_id: str, examples: list[dict]) -> list[dict]:
        """Append examples, keeping only the newest MAX_EXAMPLES."""
        word = self.get_word(word_id)
        if word is None:
            return []
        merged = (word.examples + examples)[-MAX_EXAMPLES:]
        self.conn.execute(
            "UPDATE words SET examples_json = ?, updated_at = ? WHERE id = ?",
            (json.dumps(merged), _now(), word_id),
        )
        self.conn.commit()
        return merged

    def delete_example(self, word_id: str, example_id: str) -> bool:
        word = self.get_word(word_id)
        if word is None:
            return False
        kept = [e for e in word.examples if e.get("id") != example_id]
        if len(kept) == len(word.examples):
            return False
        self.conn.execute(
            "UPDATE words SET examples_json = ?, updated_at = ? WHERE id = ?",
            (json.dumps(kept), _now(), word_id),
        )
        self.conn.commit()
        return True

    # ── Exercise / quiz pools ─────────────────────────────────────────────

    def save_content_items(self, items: list[ContentItem]) -> int:
        now = _now()
        for item in items:
            self.conn.execute(
                "INSERT OR REPLACE INTO content_items "
                "(id, kind, list_id, word_id, word, type, question, options_json, "
                "option_labels_json, correct_answer_json, difficulty, hint, feedback, "
                "pairs_json, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    item.id,
                    item.kind,
                    item.list_id,
                    item.word_id,
                    item.word,
                    item.type,
                    item.question,
                    _dumps_or_none(item.options),
                    _dumps_or_none(item.option_labels),
                    json.dumps(item.correct_answer),
                    item.difficulty,
                    item.hint,
                    item.feedback,
                    _dumps_or_none(item.pairs),
                    now,
                ),
            )
        self.conn.commit()
        return len(items)

    def get_content_item(self, kind: str, item_id: str) -> ContentItem | None:
        row = self.conn.execute(
            "SELECT * FROM content_items WHERE kind = ? AND id = ?", (kind, item_id)
        ).fetchone()
        return _row_to_content_item(row) if row else None

    def delete_content_item(self, kind: str, item_id: str) -> bool:
        cur = self.conn.execute(
            "DELETE FROM content_items WHERE kind = ? AND id = ?", (kind, item_id)
        )
        self.conn.commit()
        return cur.rowcount == 1

    def delete_content_by_list(self, list_id: str, kind: str) -> int:
        cur = self.conn.execute(
            "DELETE FROM content_items WHERE list_id = ? AND kind = ?", (list_id, kind)
        )
        self.conn.commit()
        return cur.rowcount

    def count_content(self, list_id: str, kind: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM content_items WHERE list_id = ? AND kind = ?",
            (list_id, kind),
        ).fetchone()
        return row[0]

    def get_pool_candidates(self, list_id: str, kind: str) -> list[tuple[ContentItem, int | None]]:
        """Stored records for a list paired with their word's learned point.

        Records pointing at a word that no longer exists are excluded.
        The point is ``None`` for records with no word reference or whose word
        is not a member of the list.
        """
        rows = self.conn.execute("""
            SELECT c.*, m.learned_point AS member_point
            FROM content_items c
            LEFT JOIN words w ON w.id = c.word_id
            LEFT JOIN list_memberships m
                ON m.word_id = c.word_id AND m.list_id = c.list_id
            WHERE c.list_id = ?
              AND c.kind = ?
              AND (c.word_id IS NULL OR w.id IS NOT NULL)
        """, (list_id, kind)).fetchall()
        return [(_row_to_content_item(r), r["member_point"]) for r in rows]

    # ── Dictionary cache ──────────────────────────────────────────────────

    def get_dictionary_by_stem(self, stem: str) -> dict | None:
        row = self.conn.execute("""
            SELECT d.word, d.entries_json, d.source
            FROM dictionary_stems s
            JOIN dictionary d ON d.word = s.word
            WHERE s.stem = ?
        """, (stem.lower(),)).fetchone()
        if row is None:
            return None
        stems = [
            r["stem"] for r in self.conn.execute(
                "SELECT stem FROM dictionary_stems WHERE word = ? ORDER BY stem",
                (row["word"],),
            ).fetchall()
        ]
        return {
            "word": row["word"],
            "dictionary": json.loads(row["entries_json"]),
            "stems": stems,
            "source": row["source"],
        }

    def save_dictionary(self, entry: dict) -> None:
        word = entry["word"].lower()
        self.conn.execute(
            "INSERT OR REPLACE INTO dictionary (word, entries_json, source, updated_at) "
            "VALUES (?, ?, ?, ?)",
            (word, json.dumps(entry["dictionary"]),
             entry.get("source", "Merriam-Webster"), _now()),
        )
        for stem in {word, *(s.lower() for s in entry.get("stems", []))}:
            self.conn.execute(
                "INSERT OR REPLACE INTO dictionary_stems (stem, word) VALUES (?, ?)",
                (stem, word),
            )
        self.conn.commit()

    # ── Audio cache ───────────────────────────────────────────────────────

    def get_audio_cache(self, cache_key: str) -> str | None:
        row = self.conn.execute(
            "SELECT file_path FROM audio_cache WHERE cache_key = ?",
            (cache_key,),
        ).fetchone()
        return row["file_path"] if row else None

    def set_audio_cache(self, cache_key: str, file_path: str, tts_provider: str) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO audio_cache "
            "(cache_key, file_path, tts_provider, created_at) VALUES (?, ?, ?, ?)",
            (cache_key, file_path, tts_provider, _now()),
        )
        self.conn.commit()

    def delete_audio_cache(self, cache_key: str) -> None:
        self.conn.execute(
            "DELETE FROM audio_cache WHERE cache_key = ?", (cache_key,)
        )
        self.conn.commit()

    def delete_audio_cache_by_path(self, file_path: str) -> None:
        self.conn.execute(
            "DELETE FROM audio_cache WHERE file_path = ?", (file_path,)
        )
        self.conn.commit()

    # ── Stats ─────────────────────────────────────────────────────────────

    def get_stats(self) -> dict:
        lists = self.conn.execute("SELECT COUNT(*) FROM word_lists").fetchone()[0]
        memberships = self.conn.execute(
            "SELECT COUNT(*) AS n, COALESCE(SUM(learned_point), 0) AS points, "
            "COALESCE(SUM(CASE WHEN learned_point >= ? THEN 1 ELSE 0 END), 0) AS mastered "
            "FROM list_memberships",
            (MASTERED_POINT,),
        ).fetchone()
        content = {
            r["kind"]: r["n"]
            for r in self.conn.execute(
                "SELECT kind, COUNT(*) AS n FROM content_items GROUP BY kind"
            ).fetchall()
        }
        n = memberships["n"]
        return {
            "total_lists": lists,
            "total_words": self.get_word_count(),
            "total_memberships": n,
            "mastered_memberships": memberships["mastered"],
            "average_progress": round(memberships["points"] / n, 1) if n else 0,
            "stored_exercises": content.get("exercise", 0),
            "stored_quizzes": content.get("quiz", 0),
        }
