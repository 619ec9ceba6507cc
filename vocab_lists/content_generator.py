"""Validated boundary around the LLM content provider.

Everything the provider returns is parsed and shape-checked here. Callers get
typed results or a ``ProviderError`` (``ContentParseError`` when the provider
answered with something unusable); there is no retry and no placeholder
content.
"""
from __future__ import annotations

import json
import logging
import re
import uuid
from typing import TYPE_CHECKING, Any

from vocab_lists.errors import ContentParseError, ProviderError
from vocab_lists.models import (
    DIFFICULTIES,
    ContentItem,
    Example,
    matching_pairs,
    normalize_word,
    validate_content_shape,
)
from vocab_lists.prompts import (
    DEFINITION_PROMPT,
    EXAMPLE_DETAILS_PROMPT,
    EXAMPLES_PROMPT,
    EXERCISE_PROMPT,
    QUIZ_PROMPT,
    READING_PROMPT,
    SIMILAR_WORDS_PROMPT,
    VALIDATION_PROMPT,
    PromptSet,
    format_words_block,
    format_words_inline,
)

if TYPE_CHECKING:
    from vocab_lists.providers.base import LLMProvider

_log = logging.getLogger("vocab_lists.content")


def extract_json(text: str) -> dict | None:
    """Pull a JSON object out of an LLM reply.

    Drops ``<think>`` blocks, then tries a fenced code block, then every
    balanced top-level ``{...}`` from last to first.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()

    m = re.search(r"```(?:json)?\s*\n?({.*?})\s*\n?```", text, re.DOTALL)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass

    for candidate in reversed(_balanced_objects(text)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _balanced_objects(text: str) -> list[str]:
    """Top-level ``{...}`` substrings, ignoring braces inside strings."""
    found: list[str] = []
    depth = 0
    start = -1
    in_str = False
    escape = False
    for i, ch in enumerate(text):
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"' and depth > 0:
            in_str = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                found.append(text[start : i + 1])
    return found


def parse_content_item(
    entry: Any, kind: str, list_id: str, words_by_value: dict[str, dict]
) -> ContentItem | None:
    """Build a ContentItem from a generated or imported entry.

    ``word_id`` is resolved case-insensitively against *words_by_value* and
    left as None when the word is not in the list. Shape is not checked here.
    """
    if not isinstance(entry, dict):
        return None
    word = str(entry.get("word", "")).strip()
    if not word or "correctAnswer" not in entry:
        return None

    matched = words_by_value.get(normalize_word(word))
    difficulty = entry.get("difficulty", "medium")
    if difficulty not in DIFFICULTIES:
        difficulty = "medium"

    qtype = entry.get("type", "")
    return ContentItem(
        id=uuid.uuid4().hex,
        kind=kind,
        list_id=list_id,
        word=word,
        type=qtype,
        question=str(entry.get("question", "")),
        correct_answer=entry["correctAnswer"],
        difficulty=difficulty,
        options=entry.get("options"),
        option_labels=entry.get("optionLabels"),
        hint=entry.get("hint") or "",
        feedback=entry.get("feedback") or "",
        word_id=matched["id"] if matched else None,
        pairs=matching_pairs(entry["correctAnswer"]) if qtype == "matching" else None,
    )


class ContentGenerator:
    def __init__(
        self,
        llm: LLMProvider,
        prompts: PromptSet,
        base_language: str = "English",
        target_language: str = "English",
    ):
        self.llm = llm
        self.prompts = prompts
        self.base_language = base_language
        self.target_language = target_language

    @property
    def _languages(self) -> dict:
        return {
            "base_language": self.base_language,
            "target_language": self.target_language,
        }

    async def _ask(self, system: str, prompt: str, temperature: float = 0.7) -> dict:
        try:
            text = await self.llm.generate(prompt, system=system, temperature=temperature)
        except Exception as e:
            _log.warning("%s failed: %s", self.llm.name(), e)
            raise ProviderError(f"Content provider failed: {e}") from e
        data = extract_json(text or "")
        if data is None:
            _log.warning("Unparseable response from %s: %.300s", self.llm.name(), text)
            raise ContentParseError("Content provider returned no JSON object.")
        return data

    async def _generate_items(
        self,
        kind: str,
        key: str,
        system: str,
        prompt: str,
        list_id: str,
        words: list[dict],
    ) -> list[ContentItem]:
        data = await self._ask(system, prompt)
        raw = data.get(key)
        if not isinstance(raw, list):
            raise ContentParseError(f"Response is missing a '{key}' array.")

        by_value = {normalize_word(w["value"]): w for w in words}
        items: list[ContentItem] = []
        for entry in raw:
            item = parse_content_item(entry, kind, list_id, by_value)
            if item is None:
                _log.info("Dropping malformed %s entry: %.200r", kind, entry)
                continue
            reason = validate_content_shape(item)
            if reason:
                _log.info("Dropping %s for '%s': %s", kind, item.word, reason)
                continue
            items.append(item)

        if raw and not items:
            raise ContentParseError(f"None of the generated {key} were usable.")
        _log.info("Generated %d/%d %s for list %s", len(items), len(raw), key, list_id)
        return items

    async def generate_questions(
        self, list_id: str, words: list[dict], context: str, types: list[str]
    ) -> list[ContentItem]:
        prompt = QUIZ_PROMPT.format(
            words_block=format_words_block(words),
            context=context,
            types=", ".join(types),
            count=len(words),
        )
        return await self._generate_items(
            "quiz", "questions", self.prompts.quiz, prompt, list_id, words
        )

    async def generate_exercises(
        self, list_id: str, words: list[dict], context: str, types: list[str]
    ) -> list[ContentItem]:
        prompt = EXERCISE_PROMPT.format(
            words_block=format_words_block(words),
            context=context,
            types=", ".join(types),
            count=len(words),
            **self._languages,
        )
        return await self._generate_items(
            "exercise", "exercises", self.prompts.exercise, prompt, list_id, words
        )

    async def generate_definition(self, word: str, context: str) -> dict:
        data = await self._ask(
            self.prompts.definition,
            DEFINITION_PROMPT.format(word=word, context=context, **self._languages),
            temperature=0.3,
        )
        definition = data.get("definition")
        if not isinstance(definition, str) or not definition.strip():
            raise ContentParseError(f"No definition returned for '{word}'.")
        return {
            "definition": definition.strip(),
            "phonetic": str(data.get("phonetic") or ""),
        }

    async def generate_examples(self, word: str, meaning: str, context: str) -> list[Example]:
        data = await self._ask(
            self.prompts.examples,
            EXAMPLES_PROMPT.format(word=word, meaning=meaning, context=context, **self._languages),
        )
        raw = data.get("examples")
        if not isinstance(raw, list):
            raise ContentParseError("Response is missing an 'examples' array.")
        examples = [
            Example(
                id=uuid.uuid4().hex,
                sentence=e["sentence"],
                translation=e.get("translation") or "",
                context_and_usage=e.get("context_note") or e.get("context_and_usage") or "",
            )
            for e in raw
            if isinstance(e, dict) and e.get("sentence")
        ]
        if not examples:
            raise ContentParseError(f"No usable examples returned for '{word}'.")
        return examples

    async def generate_example_details(self, sentence: str, meaning: str) -> dict:
        data = await self._ask(
            self.prompts.example_details,
            EXAMPLE_DETAILS_PROMPT.format(sentence=sentence, meaning=meaning, **self._languages),
            temperature=0.3,
        )
        return {
            "translation": str(data.get("translation") or ""),
            "context_and_usage": str(data.get("context_and_usage") or ""),
        }

    async def generate_similar_words(self, word: str, meaning: str, context: str) -> dict:
        data = await self._ask(
            self.prompts.similar_words,
            SIMILAR_WORDS_PROMPT.format(word=word, meaning=meaning, context=context, **self._languages),
        )
        synonyms = data.get("synonyms", [])
        interchangeable = data.get("interchangeable_words", [])
        if not isinstance(synonyms, list) or not isinstance(interchangeable, list):
            raise ContentParseError("Similar words response has the wrong shape.")
        return {"synonyms": synonyms, "interchangeable_words": interchangeable}

    async def generate_light_reading(self, words: list[dict], context: str) -> dict:
        data = await self._ask(
            self.prompts.reading,
            READING_PROMPT.format(
                words_inline=format_words_inline(words), context=context, **self._languages
            ),
        )
        if not isinstance(data.get("text"), str) or not data["text"].strip():
            raise ContentParseError("Reading passage is missing its text.")
        return {
            "title": str(data.get("title") or ""),
            "text": data["text"],
            "highlighted_words": data.get("highlighted_words") or [w["value"] for w in words],
            "word_count": data.get("word_count") or len(data["text"].split()),
            "difficulty_level": str(data.get("difficulty_level") or ""),
            "theme": str(data.get("theme") or context),
        }

    async def validate_answer(
        self, user_answer: str, correct_answer: str, context: str = ""
    ) -> dict:
        """Grade a free-text answer. Returns ``{"isValid", "explanation"}``."""
        data = await self._ask(
            self.prompts.validation,
            VALIDATION_PROMPT.format(
                user_answer=user_answer,
                correct_answer=correct_answer,
                context=context or "General language exercise",
                **self._languages,
            ),
            temperature=0.2,
        )
        if not isinstance(data.get("isValid"), bool):
            raise ContentParseError("Validation response is missing 'isValid'.")
        return {
            "isValid": data["isValid"],
            "explanation": str(data.get("explanation") or "").strip(),
        }
