"""Prompt templates for the content provider.

System prompts can be overridden per deployment by dropping ``<name>.md``
files into ``Settings.prompt_dir``; :func:`load_prompt_set` reads them once
at startup.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

_JSON_ONLY = "Respond with a single JSON object only, with no other text."

QUIZ_SYSTEM = f"""\
You write vocabulary quiz questions for language learners.

Each question targets exactly one word from the given list and uses one of the
requested question types. Shapes by type:
- multiple_choice / sentence_completion: "options" has exactly 4 strings,
  "optionLabels" is ["A", "B", "C", "D"], "correctAnswer" is the label.
- true_false: "options" is ["True", "False"], "optionLabels" is ["A", "B"],
  "correctAnswer" is the label.
- fill_blank: "options" and "optionLabels" are null, "correctAnswer" is the word.
- matching: "options" lists at least 4 words, "optionLabels" their shuffled
  definitions, "correctAnswer" is {{"pairs": [[word, definition], ...]}}.

Every question has "word", "type", "question", "difficulty" (easy, medium or
hard), "hint" and "feedback".

{_JSON_ONLY}
{{"questions": [ ... ]}}
"""

EXERCISE_SYSTEM = QUIZ_SYSTEM.replace(
    "vocabulary quiz questions", "practice exercises"
).replace('{"questions": [ ... ]}', '{"exercises": [ ... ]}')

DEFINITION_SYSTEM = f"""\
You define vocabulary words for language learners. Give one clear, concise
definition that fits the learning context, plus the phonetic spelling when
you know it.

{_JSON_ONLY}
{{"definition": "...", "phonetic": "..."}}
"""

EXAMPLES_SYSTEM = f"""\
You write natural example sentences that show how a word is used in a given
context. For each sentence give a translation into the learner's language and
a short note on usage.

{_JSON_ONLY}
{{"examples": [{{"sentence": "...", "translation": "...", "context_note": "..."}}]}}
"""

EXAMPLE_DETAILS_SYSTEM = f"""\
A learner wrote their own example sentence. Translate it into the learner's
language and explain briefly how the word is used in it.

{_JSON_ONLY}
{{"translation": "...", "context_and_usage": "..."}}
"""

SIMILAR_WORDS_SYSTEM = f"""\
You find synonyms and near-synonyms for a word in a given sense, and say how
each one differs.

{_JSON_ONLY}
{{"synonyms": [{{"word": "...", "definition": "...", "difference": "..."}}],
 "interchangeable_words": ["..."]}}
"""

READING_SYSTEM = f"""\
You write short, intermediate-level reading passages that use every given
vocabulary word naturally.

{_JSON_ONLY}
{{"title": "...", "text": "...", "highlighted_words": ["..."],
 "word_count": 0, "difficulty_level": "...", "theme": "..."}}
"""

VALIDATION_SYSTEM = f"""\
You grade a learner's free-text answer against the expected answer. Accept
answers that mean the same thing in the given context, allowing minor
spelling slips, inflection and letter case. Explain the verdict in one or two
sentences in the learner's language.

{_JSON_ONLY}
{{"isValid": true, "explanation": "..."}}
"""

QUIZ_PROMPT = """\
Create quiz questions for these vocabulary words:

{words_block}

Learning context: "{context}"

Use these question types: {types}
Create exactly {count} questions (one per word).
"""

EXERCISE_PROMPT = """\
Create learning exercises for these {target_language} vocabulary words for \
{base_language}-speaking learners:

{words_block}

Learning context: "{context}"

Use these exercise types: {types}
Create exactly {count} exercises (one per word).
"""

DEFINITION_PROMPT = """\
Define the word "{word}" in the context of "{context}". The word is in \
{target_language} and the definition should be in {base_language}.
"""

EXAMPLES_PROMPT = """\
Write 3-5 example sentences for the word "{word}" meaning "{meaning}" in the \
context of "{context}". Sentences in {target_language}, notes in {base_language}.
"""

EXAMPLE_DETAILS_PROMPT = """\
Sentence: "{sentence}"
Word sense: {meaning}
The learner speaks {base_language} and is learning {target_language}.
"""

SIMILAR_WORDS_PROMPT = """\
Find similar words for "{word}" meaning "{meaning}" in the context of \
"{context}". Words in {target_language}, definitions in {base_language}.
"""

READING_PROMPT = """\
Write a reading passage in {target_language} for {base_language} speakers \
that uses these words: {words_inline}. Context: "{context}".
"""


VALIDATION_PROMPT = """\
Is the answer "{user_answer}" correct for the expected answer \
"{correct_answer}"? Context: {context}. The learner speaks {base_language} \
and is learning {target_language}.
"""


def format_words_block(words: list[dict]) -> str:
    return "\n".join(f"{w['value']}: {w.get('meaning', '')}" for w in words)


def format_words_inline(words: list[dict]) -> str:
    return ", ".join(f"{w['value']} ({w.get('meaning', '')})" for w in words)


@dataclass
class PromptSet:
    quiz: str = QUIZ_SYSTEM
    exercise: str = EXERCISE_SYSTEM
    definition: str = DEFINITION_SYSTEM
    examples: str = EXAMPLES_SYSTEM
    example_details: str = EXAMPLE_DETAILS_SYSTEM
    similar_words: str = SIMILAR_WORDS_SYSTEM
    reading: str = READING_SYSTEM
    validation: str = VALIDATION_SYSTEM


def load_prompt_set(prompt_dir: Path | None = None) -> PromptSet:
    """Build the system prompts, letting ``<field>.md`` files override defaults."""
    prompts = PromptSet()
    if prompt_dir is None or not prompt_dir.is_dir():
        return prompts
    for f in fields(PromptSet):
        override = prompt_dir / f"{f.name}.md"
        if override.exists():
            setattr(prompts, f.name, override.read_text())
    return prompts
