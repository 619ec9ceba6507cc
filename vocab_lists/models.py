from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MIN_POINT = 0
MAX_POINT = 100
MASTERED_POINT = 80

QUESTION_TYPES = (
    "multiple_choice",
    "fill_blank",
    "true_false",
    "sentence_completion",
    "matching",
)
DIFFICULTIES = ("easy", "medium", "hard")
CONTENT_KINDS = ("exercise", "quiz")

# Expected option counts per question type (None = options must be absent)
OPTION_COUNTS = {
    "multiple_choice": 4,
    "sentence_completion": 4,
    "true_false": 2,
    "fill_blank": None,
}
MIN_MATCHING_PAIRS = 4


def normalize_word(value: str) -> str:
    return value.strip().lower()


@dataclass
class ListMembership:
    list_id: str
    meaning: str = ""
    learned_point: int = 0


@dataclass
class Word:
    id: str
    value: str
    memberships: list[ListMembership] = field(default_factory=list)
    definition: str = ""
    phonetic: str = ""
    dictionary: list[dict] = field(default_factory=list)
    examples: list[dict] = field(default_factory=list)

    def membership(self, list_id: str) -> ListMembership | None:
        return next((m for m in self.memberships if m.list_id == list_id), None)

    @property
    def is_orphaned(self) -> bool:
        return not self.memberships


@dataclass
class WordList:
    id: str
    name: str
    description: str = ""
    context: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Example:
    id: str
    sentence: str
    translation: str = ""
    context_and_usage: str = ""


@dataclass
class ContentItem:
    """A stored or freshly generated exercise/quiz question."""
    id: str
    kind: str  # exercise | quiz
    list_id: str
    word: str
    type: str
    question: str
    correct_answer: Any
    difficulty: str = "medium"
    options: list | None = None
    option_labels: list[str] | None = None
    hint: str = ""
    feedback: str = ""
    word_id: str | None = None
    pairs: list[list[str]] | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "listId": self.list_id,
            "word": self.word,
            "wordId": self.word_id,
            "type": self.type,
            "question": self.question,
            "options": self.options,
            "optionLabels": self.option_labels,
            "correctAnswer": self.correct_answer,
            "difficulty": self.difficulty,
            "hint": self.hint,
            "feedback": self.feedback,
            "pairs": self.pairs,
        }


def matching_pairs(correct_answer: Any) -> list[list[str]] | None:
    """Word/definition pairs from a matching answer (``{"pairs": [...]}`` or a list)."""
    if isinstance(correct_answer, dict):
        correct_answer = correct_answer.get("pairs")
    if isinstance(correct_answer, list):
        return [list(p) for p in correct_answer if isinstance(p, (list, tuple)) and len(p) == 2]
    return None


def validate_content_shape(item: ContentItem) -> str | None:
    """Check the option-count rules for *item*.

    Returns ``None`` when valid, else a human-readable reason.
    """
    if item.type not in QUESTION_TYPES:
        return f"unknown type {item.type!r}"
    if not item.question:
        return "empty question"

    if item.type == "matching":
        pairs = item.pairs or matching_pairs(item.correct_answer)
        if not pairs or len(pairs) < MIN_MATCHING_PAIRS:
            n = len(pairs) if pairs else 0
            return f"matching needs at least {MIN_MATCHING_PAIRS} pairs (got {n})"
        return None

    expected = OPTION_COUNTS[item.type]
    if expected is None:
        if item.options or item.option_labels:
            return f"{item.type} must not carry options"
        return None

    if not isinstance(item.options, list) or len(item.options) != expected:
        n = len(item.options) if isinstance(item.options, list) else 0
        return f"{item.type} needs exactly {expected} options (got {n})"
    if item.option_labels is not None and len(item.option_labels) != expected:
        return f"{item.type} needs {expected} option labels (got {len(item.option_labels)})"
    return None
