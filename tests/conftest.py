"""Shared test fixtures."""
from __future__ import annotations

import uuid

import pytest

from vocab_lists.db import Database
from vocab_lists.models import ContentItem


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_list(tmp_db):
    return tmp_db.create_list("GRE Verbal", description="Hard words", context="Academic English")


@pytest.fixture
def populated_db(tmp_db, sample_list):
    """A database with one list holding five words at varied points."""
    points = {
        "perspicacious": 0,
        "sagacious": 20,
        "astute": 50,
        "ebullient": 90,
        "sanguine": 100,
    }
    for value, point in points.items():
        word = tmp_db.create_word(value, definition=f"meaning of {value}")
        tmp_db.add_membership(word.id, sample_list.id, meaning=f"meaning of {value}", learned_point=point)
    return tmp_db


def make_item(list_id: str, word: str, word_id: str | None = None, kind: str = "quiz", **kw) -> ContentItem:
    """A valid multiple-choice item; override fields with keyword arguments."""
    fields = {
        "id": uuid.uuid4().hex,
        "kind": kind,
        "list_id": list_id,
        "word": word,
        "word_id": word_id,
        "type": "multiple_choice",
        "question": f"Which word fits: ___ ({word})?",
        "options": [word, "alpha", "beta", "gamma"],
        "option_labels": ["A", "B", "C", "D"],
        "correct_answer": "A",
    }
    fields.update(kw)
    return ContentItem(**fields)


@pytest.fixture
def item_factory():
    return make_item
