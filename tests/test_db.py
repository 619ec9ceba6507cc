"""Tests for the database layer."""
from __future__ import annotations

import pytest

from vocab_lists.db import MAX_EXAMPLES, Database


class TestSchema:
    def test_creates_file(self, tmp_path):
        db = Database(tmp_path / "fresh.db")
        assert (tmp_path / "fresh.db").exists()
        db.close()

    def test_reopen_keeps_data(self, tmp_path):
        db = Database(tmp_path / "re.db")
        db.create_list("Keep me")
        db.close()
        db = Database(tmp_path / "re.db")
        assert [wl.name for wl in db.get_all_lists()] == ["Keep me"]
        db.close()


class TestLists:
    def test_create_and_get(self, tmp_db):
        wl = tmp_db.create_list("Travel", description="Trip words", context="Airports")
        fetched = tmp_db.get_list(wl.id)
        assert fetched.name == "Travel"
        assert fetched.context == "Airports"

    def test_get_missing(self, tmp_db):
        assert tmp_db.get_list("nope") is None

    def test_update_partial(self, tmp_db):
        wl = tmp_db.create_list("Old", description="keep", context="ctx")
        updated = tmp_db.update_list(wl.id, name="New")
        assert updated.name == "New"
        assert updated.description == "keep"
        assert updated.context == "ctx"

    def test_update_missing(self, tmp_db):
        assert tmp_db.update_list("nope", name="x") is None

    def test_summary(self, populated_db, sample_list):
        summary = populated_db.get_list_summary(sample_list.id)
        assert summary["word_count"] == 5
        assert summary["average_progress"] == 52  # (0+20+50+90+100) / 5
        assert summary["mastered_words"] == 2

    def test_summary_of_empty_list(self, tmp_db):
        wl = tmp_db.create_list("Empty")
        assert tmp_db.get_list_summary(wl.id) == {
            "word_count": 0, "average_progress": 0, "mastered_words": 0,
        }


class TestOrphanCleanup:
    def test_sole_membership_deletes_word(self, tmp_db):
        wl = tmp_db.create_list("Only")
        word = tmp_db.create_word("solitary")
        tmp_db.add_membership(word.id, wl.id)

        result = tmp_db.delete_list(wl.id)
        assert result["words_deleted"] == 1
        assert tmp_db.get_word(word.id) is None
        assert tmp_db.get_list(wl.id) is None

    def test_shared_word_survives(self, tmp_db):
        a = tmp_db.create_list("A")
        b = tmp_db.create_list("B")
        word = tmp_db.create_word("shared")
        tmp_db.add_membership(word.id, a.id, learned_point=30)
        tmp_db.add_membership(word.id, b.id, learned_point=70)

        result = tmp_db.delete_list(a.id)
        assert result["words_deleted"] == 0
        survivor = tmp_db.get_word(word.id)
        assert [m.list_id for m in survivor.memberships] == [b.id]
        assert survivor.membership(b.id).learned_point == 70

    def test_delete_list_removes_its_content(self, populated_db, sample_list, item_factory):
        populated_db.save_content_items([
            item_factory(sample_list.id, "astute"),
            item_factory(sample_list.id, "astute", kind="exercise"),
        ])
        result = populated_db.delete_list(sample_list.id)
        assert result["content_deleted"] == 2
        assert result["memberships_removed"] == 5
        assert populated_db.get_word_count() == 0

    def test_delete_missing_list(self, tmp_db):
        assert tmp_db.delete_list("nope") is None

    def test_remove_last_membership_deletes_word(self, tmp_db):
        wl = tmp_db.create_list("L")
        word = tmp_db.create_word("gone")
        tmp_db.add_membership(word.id, wl.id)
        assert tmp_db.remove_membership(word.id, wl.id) is True
        assert tmp_db.get_word(word.id) is None

    def test_remove_one_of_two_memberships(self, tmp_db):
        a = tmp_db.create_list("A")
        b = tmp_db.create_list("B")
        word = tmp_db.create_word("stays")
        tmp_db.add_membership(word.id, a.id)
        tmp_db.add_membership(word.id, b.id)
        assert tmp_db.remove_membership(word.id, a.id) is False
        assert tmp_db.get_word(word.id).membership(a.id) is None


class TestWordsAndMemberships:
    def test_value_is_normalized(self, tmp_db):
        word = tmp_db.create_word("  Ephemeral ")
        assert word.value == "ephemeral"
        assert tmp_db.get_word_by_value("EPHEMERAL").id == word.id

    def test_one_membership_per_list(self, tmp_db):
        wl = tmp_db.create_list("L")
        word = tmp_db.create_word("twice")
        assert tmp_db.add_membership(word.id, wl.id) is True
        assert tmp_db.add_membership(word.id, wl.id, learned_point=50) is False
        assert len(tmp_db.get_word(word.id).memberships) == 1
        assert tmp_db.get_word(word.id).membership(wl.id).learned_point == 0

    def test_list_words_carry_membership_fields(self, populated_db, sample_list):
        words = populated_db.get_list_words(sample_list.id)
        astute = next(w for w in words if w["value"] == "astute")
        assert astute["learned_point"] == 50
        assert astute["meaning"] == "meaning of astute"

    def test_get_memberships_only_for_list(self, populated_db, sample_list):
        ids = [w["id"] for w in populated_db.get_list_words(sample_list.id)]
        other = populated_db.create_list("Other")
        assert populated_db.get_memberships(other.id, ids) == {}
        points = populated_db.get_memberships(sample_list.id, ids + ["ghost"])
        assert sorted(points.values()) == [0, 20, 50, 90, 100]

    def test_find_list_word_by_value(self, populated_db, sample_list):
        assert populated_db.find_list_word_by_value(sample_list.id, "Astute")["value"] == "astute"
        assert populated_db.find_list_word_by_value(sample_list.id, "absent") is None


class TestExamples:
    def test_capped_keeping_newest(self, tmp_db):
        word = tmp_db.create_word("many")
        batch = [{"id": str(i), "sentence": f"s{i}"} for i in range(MAX_EXAMPLES + 3)]
        stored = tmp_db.add_examples(word.id, batch)
        assert len(stored) == MAX_EXAMPLES
        assert stored[0]["id"] == "3"
        assert stored[-1]["id"] == str(MAX_EXAMPLES + 2)

    def test_delete_example(self, tmp_db):
        word = tmp_db.create_word("some")
        tmp_db.add_examples(word.id, [{"id": "a", "sentence": "x"}, {"id": "b", "sentence": "y"}])
        assert tmp_db.delete_example(word.id, "a") is True
        assert tmp_db.delete_example(word.id, "a") is False
        assert [e["id"] for e in tmp_db.get_word(word.id).examples] == ["b"]


class TestContentItems:
    def test_round_trip_keeps_json_fields(self, tmp_db, sample_list, item_factory):
        item = item_factory(
            sample_list.id, "match",
            type="matching",
            options=["a", "b", "c", "d"],
            option_labels=["1", "2", "3", "4"],
            correct_answer={"pairs": [["a", "1"], ["b", "2"], ["c", "3"], ["d", "4"]]},
            pairs=[["a", "1"], ["b", "2"], ["c", "3"], ["d", "4"]],
        )
        tmp_db.save_content_items([item])
        assert tmp_db.get_content_item("quiz", item.id) == item

    def test_counts_and_deletes(self, tmp_db, sample_list, item_factory):
        quizzes = [item_factory(sample_list.id, "w") for _ in range(3)]
        exercise = item_factory(sample_list.id, "w", kind="exercise")
        tmp_db.save_content_items(quizzes + [exercise])
        assert tmp_db.count_content(sample_list.id, "quiz") == 3
        assert tmp_db.count_content(sample_list.id, "exercise") == 1

        assert tmp_db.delete_content_item("exercise", quizzes[0].id) is False
        assert tmp_db.delete_content_item("quiz", quizzes[0].id) is True
        assert tmp_db.delete_content_by_list(sample_list.id, "quiz") == 2
        assert tmp_db.count_content(sample_list.id, "exercise") == 1


class TestDictionaryCache:
    def test_lookup_through_stem(self, tmp_db):
        tmp_db.save_dictionary({
            "word": "run",
            "dictionary": [{"partOfSpeech": "verb"}],
            "stems": ["run", "running", "ran"],
        })
        hit = tmp_db.get_dictionary_by_stem("Running")
        assert hit["word"] == "run"
        assert hit["stems"] == ["ran", "run", "running"]
        assert hit["source"] == "Merriam-Webster"

    def test_miss(self, tmp_db):
        assert tmp_db.get_dictionary_by_stem("nothing") is None


class TestAudioCache:
    def test_set_get_delete(self, tmp_db):
        tmp_db.set_audio_cache("k1", "/tmp/k1.mp3", "fake")
        assert tmp_db.get_audio_cache("k1") == "/tmp/k1.mp3"
        tmp_db.delete_audio_cache_by_path("/tmp/k1.mp3")
        assert tmp_db.get_audio_cache("k1") is None


class TestStats:
    def test_stats(self, populated_db, sample_list, item_factory):
        populated_db.save_content_items([item_factory(sample_list.id, "astute")])
        stats = populated_db.get_stats()
        assert stats["total_lists"] == 1
        assert stats["total_words"] == 5
        assert stats["mastered_memberships"] == 2
        assert stats["stored_quizzes"] == 1
        assert stats["stored_exercises"] == 0
