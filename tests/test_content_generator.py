"""Tests for the content provider boundary (JSON extraction, validation, typed errors)."""
from __future__ import annotations

import json

import pytest

from vocab_lists.content_generator import ContentGenerator, extract_json, parse_content_item
from vocab_lists.errors import ContentParseError, ProviderError
from vocab_lists.models import Example
from vocab_lists.prompts import PromptSet, load_prompt_set


class FakeLLM:
    """Returns canned responses in order and records what it was asked."""

    def __init__(self, responses=None, error=None):
        self._responses = responses or []
        self._error = error
        self.calls: list[dict] = []

    async def generate(self, prompt: str, system: str | None = None, temperature: float = 0.7) -> str:
        self.calls.append({"prompt": prompt, "system": system, "temperature": temperature})
        if self._error:
            raise self._error
        idx = min(len(self.calls) - 1, len(self._responses) - 1)
        return self._responses[idx]

    def name(self) -> str:
        return "fake-llm"


WORDS = [
    {"id": "w1", "value": "astute", "meaning": "shrewd"},
    {"id": "w2", "value": "terse", "meaning": "curt"},
]


def _mc(word, **kw):
    q = {
        "word": word,
        "type": "multiple_choice",
        "question": f"Pick the synonym of {word}",
        "options": ["a", "b", "c", "d"],
        "optionLabels": ["A", "B", "C", "D"],
        "correctAnswer": "A",
        "difficulty": "easy",
        "hint": "think",
        "feedback": "nice",
    }
    q.update(kw)
    return q


def _generator(responses=None, error=None):
    llm = FakeLLM([json.dumps(r) if not isinstance(r, str) else r for r in (responses or [])], error)
    return ContentGenerator(llm, PromptSet(), base_language="English", target_language="Spanish"), llm


class TestExtractJson:
    def test_bare_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_json('Here:\n```json\n{"a": 1}\n```') == {"a": 1}

    def test_fence_without_lang(self):
        assert extract_json('```\n{"a": 2}\n```') == {"a": 2}

    def test_think_block_stripped(self):
        text = '<think>maybe {"a": 0}?</think>\n{"a": 3}'
        assert extract_json(text) == {"a": 3}

    def test_last_object_wins(self):
        text = 'Example: {"a": 1}\nFinal answer: {"a": 2, "nested": {"b": "}"}}'
        assert extract_json(text) == {"a": 2, "nested": {"b": "}"}}

    def test_garbage(self):
        assert extract_json("no json here") is None
        assert extract_json("{not: valid}") is None


class TestParseContentItem:
    def test_word_resolved_case_insensitively(self):
        item = parse_content_item(_mc("Astute"), "quiz", "l1", {"astute": WORDS[0]})
        assert item.word_id == "w1"
        assert item.list_id == "l1"
        assert item.kind == "quiz"

    def test_unknown_word_has_no_id(self):
        assert parse_content_item(_mc("other"), "quiz", "l1", {}).word_id is None

    def test_missing_answer(self):
        entry = _mc("astute")
        del entry["correctAnswer"]
        assert parse_content_item(entry, "quiz", "l1", {}) is None

    def test_bad_difficulty_defaults(self):
        assert parse_content_item(_mc("x", difficulty="brutal"), "quiz", "l", {}).difficulty == "medium"

    def test_matching_pairs_extracted(self):
        pairs = [["a", "1"], ["b", "2"], ["c", "3"], ["d", "4"]]
        entry = _mc("x", type="matching", correctAnswer={"pairs": pairs})
        assert parse_content_item(entry, "exercise", "l", {}).pairs == pairs


class TestGenerateQuestions:
    @pytest.mark.asyncio
    async def test_valid_questions(self):
        gen, llm = _generator([{"questions": [_mc("astute"), _mc("terse")]}])
        items = await gen.generate_questions("l1", WORDS, "Business", ["multiple_choice"])
        assert [i.word_id for i in items] == ["w1", "w2"]
        assert all(i.kind == "quiz" for i in items)
        assert "astute: shrewd" in llm.calls[0]["prompt"]
        assert llm.calls[0]["system"] == PromptSet().quiz

    @pytest.mark.asyncio
    async def test_invalid_items_dropped(self):
        bad = _mc("terse", options=["only", "three", "options"])
        gen, _ = _generator([{"questions": [_mc("astute"), bad, "junk"]}])
        items = await gen.generate_questions("l1", WORDS, "ctx", ["multiple_choice"])
        assert [i.word for i in items] == ["astute"]

    @pytest.mark.asyncio
    async def test_all_invalid_raises(self):
        gen, _ = _generator([{"questions": [_mc("terse", type="essay")]}])
        with pytest.raises(ContentParseError):
            await gen.generate_questions("l1", WORDS, "ctx", ["multiple_choice"])

    @pytest.mark.asyncio
    async def test_missing_array_raises(self):
        gen, _ = _generator([{"items": []}])
        with pytest.raises(ContentParseError):
            await gen.generate_questions("l1", WORDS, "ctx", ["multiple_choice"])

    @pytest.mark.asyncio
    async def test_unparseable_raises(self):
        gen, _ = _generator(["I cannot help with that."])
        with pytest.raises(ContentParseError):
            await gen.generate_questions("l1", WORDS, "ctx", ["multiple_choice"])

    @pytest.mark.asyncio
    async def test_provider_failure_is_wrapped(self):
        gen, _ = _generator(error=ConnectionError("refused"))
        with pytest.raises(ProviderError) as exc:
            await gen.generate_questions("l1", WORDS, "ctx", ["multiple_choice"])
        assert not isinstance(exc.value, ContentParseError)
        assert isinstance(exc.value.__cause__, ConnectionError)


class TestGenerateExercises:
    @pytest.mark.asyncio
    async def test_exercises_use_languages(self):
        fill = _mc("terse", type="fill_blank", options=None, optionLabels=None, correctAnswer="terse")
        gen, llm = _generator([{"exercises": [fill]}])
        items = await gen.generate_exercises("l1", WORDS, "ctx", ["fill_blank"])
        assert items[0].kind == "exercise"
        assert "Spanish vocabulary words for English-speaking" in llm.calls[0]["prompt"]


class TestWordContent:
    @pytest.mark.asyncio
    async def test_definition(self):
        gen, llm = _generator([{"definition": " keen insight ", "phonetic": "/x/"}])
        assert await gen.generate_definition("astute", "ctx") == {
            "definition": "keen insight", "phonetic": "/x/",
        }
        assert llm.calls[0]["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_definition_missing(self):
        gen, _ = _generator([{"phonetic": "/x/"}])
        with pytest.raises(ContentParseError):
            await gen.generate_definition("astute", "ctx")

    @pytest.mark.asyncio
    async def test_examples(self):
        gen, _ = _generator([{"examples": [
            {"sentence": "She was astute.", "translation": "Era astuta.", "context_note": "formal"},
            {"translation": "no sentence"},
        ]}])
        examples = await gen.generate_examples("astute", "shrewd", "ctx")
        assert len(examples) == 1
        assert isinstance(examples[0], Example)
        assert examples[0].context_and_usage == "formal"

    @pytest.mark.asyncio
    async def test_example_details(self):
        gen, _ = _generator([{"translation": "t", "context_and_usage": "u"}])
        assert await gen.generate_example_details("s", "m") == {
            "translation": "t", "context_and_usage": "u",
        }

    @pytest.mark.asyncio
    async def test_similar_words(self):
        gen, _ = _generator([{"synonyms": [{"word": "shrewd"}]}])
        result = await gen.generate_similar_words("astute", "m", "ctx")
        assert result == {"synonyms": [{"word": "shrewd"}], "interchangeable_words": []}

    @pytest.mark.asyncio
    async def test_light_reading_defaults(self):
        gen, _ = _generator([{"title": "T", "text": "one two three"}])
        reading = await gen.generate_light_reading(WORDS, "Office")
        assert reading["word_count"] == 3
        assert reading["highlighted_words"] == ["astute", "terse"]
        assert reading["theme"] == "Office"

    @pytest.mark.asyncio
    async def test_light_reading_without_text(self):
        gen, _ = _generator([{"title": "T"}])
        with pytest.raises(ContentParseError):
            await gen.generate_light_reading(WORDS, "Office")


class TestValidateAnswer:
    @pytest.mark.asyncio
    async def test_verdict(self):
        gen, llm = _generator([{"isValid": False, "explanation": " Wrong word. "}])
        result = await gen.validate_answer("sagacious", "astute", "")
        assert result == {"isValid": False, "explanation": "Wrong word."}
        assert llm.calls[0]["system"] == PromptSet().validation
        assert "General language exercise" in llm.calls[0]["prompt"]
        assert "learning Spanish" in llm.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_missing_verdict(self):
        gen, _ = _generator([{"isValid": "yes"}])
        with pytest.raises(ContentParseError):
            await gen.validate_answer("a", "b", "ctx")


class TestPromptSet:
    def test_defaults_without_dir(self):
        assert load_prompt_set(None) == PromptSet()

    def test_override_file(self, tmp_path):
        (tmp_path / "quiz.md").write_text("custom quiz prompt")
        prompts = load_prompt_set(tmp_path)
        assert prompts.quiz == "custom quiz prompt"
        assert prompts.exercise == PromptSet().exercise
