from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vocab_lists.dictionary import lookup_word
from vocab_lists.errors import NotFoundError
from vocab_lists.models import Word, normalize_word

if TYPE_CHECKING:
    from vocab_lists.content_generator import ContentGenerator
    from vocab_lists.db import Database

_log = logging.getLogger("vocab_lists.words")


async def add_word_to_list(
    db: Database,
    generator: ContentGenerator | None,
    list_id: str,
    value: str,
    predefined: dict | None = None,
    dictionary_key: str | None = None,
) -> tuple[Word, bool]:
    """Add *value* to a list, creating the word if it is new.

    *predefined* (``{"definition", "phonetic"}``) skips the generator call.
    Returns the word and whether anything changed; adding a word the list
    already holds is a no-op.
    """
    word_list = db.get_list(list_id)
    if word_list is None:
        raise NotFoundError(f"List {list_id} not found")

    normalized = normalize_word(value)
    if not normalized:
        raise ValueError("Word value is empty")

    existing = db.get_word_by_value(normalized)
    if existing and existing.membership(list_id):
        return existing, False

    if predefined:
        definition = {
            "definition": predefined.get("definition", ""),
            "phonetic": predefined.get("phonetic", ""),
        }
    elif generator is not None:
        definition = await generator.generate_definition(normalized, word_list.context)
    else:
        definition = {"definition": "", "phonetic": ""}

    dictionary: list[dict] = []
    if dictionary_key:
        entry = await lookup_word(db, normalized, dictionary_key)
        if entry:
            dictionary = [entry]

    if existing:
        word_id = existing.id
        if dictionary:
            db.update_word_dictionary(word_id, dictionary)
    else:
        word_id = db.create_word(
            normalized,
            definition=definition["definition"],
            phonetic=definition["phonetic"],
            dictionary=dictionary,
        ).id

    db.add_membership(word_id, list_id, meaning=definition["definition"])
    db.touch_list(list_id)
    _log.info("Added '%s' to list %s", normalized, list_id)
    return db.get_word(word_id), True
