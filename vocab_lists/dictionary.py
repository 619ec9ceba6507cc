"""Merriam-Webster lookups cached in SQLite.

Entries are stored once per root word; every stem the API reports for that
root points back at it, so looking up "running" after "run" was fetched is a
cache hit.
"""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from vocab_lists.db import Database

_log = logging.getLogger("vocab_lists.dictionary")

API_URL = "https://www.dictionaryapi.com/api/v3/references/collegiate/json/{word}"
AUDIO_URL = "https://media.merriam-webster.com/audio/prons/en/us/mp3/{subdir}/{name}.mp3"
SOURCE = "Merriam-Webster"

_LINK_TAG = re.compile(r"\{(?:a_link|d_link|i_link|et_link|mat)\|([^|}]+)(?:\|[^}]*)?\}")
_SYNONYM_TAG = re.compile(r"\{sx\|([^|}]+)(?:\|[^}]*)?\}")
_ANY_TAG = re.compile(r"\{[^}]*\}")


def build_audio_url(audio_file: str) -> str:
    """Full media URL for an MW pronunciation file name."""
    if not audio_file:
        return ""
    if audio_file.startswith("bix"):
        subdir = "bix"
    elif audio_file.startswith("gg"):
        subdir = "gg"
    elif audio_file[0] in "_.,;!?":
        subdir = "punct"
    elif audio_file[0].isdigit():
        subdir = "number"
    else:
        subdir = audio_file[0].lower()
    return AUDIO_URL.format(subdir=subdir, name=audio_file)


def clean_definition_text(text: str) -> str:
    """Strip MW formatting markup, keeping link and synonym text."""
    if not text:
        return ""
    text = text.replace("{bc}", "")
    text = _LINK_TAG.sub(r"\1", text)
    text = _SYNONYM_TAG.sub(r"(\1)", text)
    text = _ANY_TAG.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def _phonetics(prs: list[dict] | None) -> list[dict]:
    result = []
    for p in prs or []:
        audio = (p.get("sound") or {}).get("audio")
        result.append({
            "text": p.get("mw", ""),
            "audio": build_audio_url(audio) if audio else None,
        })
    return result


def _parse_senses(sseq: list) -> list[dict]:
    definitions: list[dict] = []
    for item in sseq:
        if not isinstance(item, list) or not item:
            continue
        # sseq nests one level deeper than pseq: [[["sense", {...}], ...], ...]
        if isinstance(item[0], list):
            definitions.extend(_parse_senses(item))
            continue
        if len(item) != 2:
            continue
        tag, body = item
        if tag == "pseq":
            definitions.extend(_parse_senses(body))
        elif tag == "sense":
            parts = []
            for dt in body.get("dt", []):
                if dt[0] == "text":
                    parts.append(clean_definition_text(dt[1]))
                elif dt[0] == "vis":
                    examples = ", ".join(clean_definition_text(v.get("t", "")) for v in dt[1])
                    parts.append(f"e.g., {examples}")
            text = " ".join(p for p in parts if p).strip()
            if text:
                definitions.append({"number": body.get("sn"), "definition": text})
    return definitions


def transform_entries(raw: Any, query: str) -> dict | None:
    """Turn a raw collegiate API response into one canonical entry.

    Returns None when the response holds no entry for *query* (MW answers
    unknown words with a list of spelling suggestions instead).
    """
    if not isinstance(raw, list) or not raw or not isinstance(raw[0], dict):
        return None
    query = query.lower()
    pattern = re.compile(rf"^{re.escape(query)}(:\d+)?$")
    core = [
        e for e in raw
        if isinstance(e, dict) and pattern.match(str(e.get("meta", {}).get("id", "")).lower())
    ]
    if not core:
        return None

    groups: dict[int, list[dict]] = {}
    for entry in core:
        groups.setdefault(entry.get("hom", 0), []).append(entry)

    entries = []
    for number, group in enumerate(groups.values(), start=1):
        main = group[0]
        defs = main.get("def") or []
        entries.append({
            "partOfSpeech": main.get("fl", ""),
            "entryNumber": number,
            "phonetics": _phonetics(main.get("hwi", {}).get("prs")),
            "definitions": _parse_senses(defs[0].get("sseq", [])) if defs else [],
            "derivatives": [
                {"word": uro.get("ure", "").replace("*", ""), "partOfSpeech": uro.get("fl", "")}
                for uro in main.get("uros") or []
            ],
        })

    stems: list[str] = []
    for e in raw:
        if isinstance(e, dict):
            for s in e.get("meta", {}).get("stems", []):
                if s not in stems:
                    stems.append(s)

    return {"word": query, "dictionary": entries, "stems": stems, "source": SOURCE}


async def lookup_word(
    db: Database,
    word: str,
    api_key: str,
    client: httpx.AsyncClient | None = None,
) -> dict | None:
    """Dictionary entry for *word*, from cache or the MW API.

    Returns None when nothing could be found; lookup failures never raise.
    """
    query = word.strip().lower()
    cached = db.get_dictionary_by_stem(query)
    if cached:
        _log.info("Dictionary cache hit for '%s' via '%s'", query, cached["word"])
        return cached

    if not api_key:
        _log.info("No dictionary API key configured; skipping lookup for '%s'", query)
        return None

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=15.0)
    try:
        resp = await client.get(API_URL.format(word=query), params={"key": api_key})
        resp.raise_for_status()
        raw = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        _log.warning("Dictionary lookup for '%s' failed: %s", query, e)
        return None
    finally:
        if own_client:
            await client.aclose()

    entry = transform_entries(raw, query)
    if entry is None:
        _log.info("No dictionary entry for '%s'", query)
        return None
    db.save_dictionary(entry)
    return db.get_dictionary_by_stem(query) or entry
