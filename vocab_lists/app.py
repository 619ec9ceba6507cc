"""FastAPI application with all routes."""
from __future__ import annotations

import dataclasses
import json
import logging
import uuid
from collections import Counter

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, Response

from vocab_lists.audio import (
    audio_cache_key,
    build_list_pronunciation,
    cleanup_audio_cache,
    get_or_create_audio,
)
from vocab_lists.config import Settings, check_setting, load_settings, save_settings
from vocab_lists.content_generator import ContentGenerator, parse_content_item
from vocab_lists.db import MAX_EXAMPLES, Database
from vocab_lists.errors import InsufficientContentError, NotFoundError, ProviderError
from vocab_lists.local_pool import get_local_content, require_minimum
from vocab_lists.models import ContentItem, WordList, normalize_word, validate_content_shape
from vocab_lists.progress import apply_batch_results, apply_point_changes
from vocab_lists.prompts import PromptSet, load_prompt_set
from vocab_lists.sampler import weighted_sample
from vocab_lists.word_service import add_word_to_list

app = FastAPI(title="Vocab Lists")

_log = logging.getLogger("vocab_lists.app")

# Global state (initialized on startup)
_db: Database | None = None
_settings: Settings | None = None
_prompts: PromptSet | None = None


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_prompts() -> PromptSet:
    global _prompts
    if _prompts is None:
        _prompts = load_prompt_set(get_settings().prompt_full_path)
    return _prompts


def _get_llm():
    s = get_settings()
    if s.llm_provider == "ollama":
        from vocab_lists.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=s.ollama_url, model=s.llm_model)
    elif s.llm_provider == "anthropic":
        from vocab_lists.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider()
    elif s.llm_provider == "openai":
        from vocab_lists.providers.llm_openai import OpenAIProvider
        return OpenAIProvider()
    raise ValueError(f"Unknown LLM provider: {s.llm_provider}")


def _get_tts():
    s = get_settings()
    if s.tts_provider == "edge-tts":
        from vocab_lists.providers.tts_edge import EdgeTTSProvider
        return EdgeTTSProvider(voice=s.tts_voice)
    elif s.tts_provider == "elevenlabs":
        from vocab_lists.providers.tts_elevenlabs import ElevenLabsProvider
        return ElevenLabsProvider(voice_id=s.tts_voice, model_id=s.elevenlabs_model)
    raise ValueError(f"Unknown TTS provider: {s.tts_provider}")


def _get_generator() -> ContentGenerator:
    s = get_settings()
    return ContentGenerator(
        _get_llm(),
        get_prompts(),
        base_language=s.base_language,
        target_language=s.target_language,
    )


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    cleanup_audio_cache(
        _settings.audio_cache_full_path, _settings.audio_cache_max_age_days, db=_db
    )


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


# ── Error mapping ─────────────────────────────────────────────────────────

@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InsufficientContentError)
async def _insufficient(request: Request, exc: InsufficientContentError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "found": exc.found, "required": exc.required},
    )


@app.exception_handler(ProviderError)
async def _provider_failed(request: Request, exc: ProviderError):
    _log.warning("Content provider error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500, content={"detail": "Content generation failed. Try again later."}
    )


# ── Helpers ───────────────────────────────────────────────────────────────

async def _json_body(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(400, "Malformed JSON body")


async def _json_object(request: Request) -> dict:
    if not await request.body():
        return {}
    body = await _json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    return body


def _require_list(list_id: str) -> WordList:
    word_list = get_db().get_list(list_id)
    if word_list is None:
        raise NotFoundError("List not found")
    return word_list


def _list_dict(wl: WordList) -> dict:
    return {
        "id": wl.id,
        "name": wl.name,
        "description": wl.description,
        "context": wl.context,
        "created_at": wl.created_at,
        "updated_at": wl.updated_at,
    }


def _list_word_dict(w: dict) -> dict:
    return {
        "id": w["id"],
        "value": w["value"],
        "meaning": w["meaning"],
        "learnedPoint": w["learned_point"],
        "definition": w["definition"],
        "phonetic": w["phonetic"],
        "dictionary": w["dictionary"],
        "created_at": w["created_at"],
        "updated_at": w["updated_at"],
    }


def _mode(body: dict) -> str:
    mode = body.get("mode", "ai")
    if mode not in ("ai", "local"):
        raise HTTPException(400, "mode must be 'ai' or 'local'")
    return mode


def _sample_list_words(list_id: str, k: int) -> list[dict]:
    """Pick *k* words from a list, favouring the ones with fewer points."""
    words = get_db().get_list_words(list_id)
    if not words:
        raise HTTPException(400, "List has no words")
    return weighted_sample(words, k, point_of=lambda w: w["learned_point"])


async def _ai_questions(word_list: WordList) -> list[ContentItem]:
    s = get_settings()
    words = _sample_list_words(word_list.id, s.quiz_size)
    return await _get_generator().generate_questions(
        word_list.id, words, word_list.context or "General", s.question_types
    )


def _type_counts(items: list[ContentItem]) -> dict[str, int]:
    return dict(Counter(i.type for i in items))


# ── API: Stats ────────────────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


# ── API: Lists ────────────────────────────────────────────────────────────

@app.post("/api/lists", status_code=201)
async def api_create_list(request: Request):
    body = await _json_object(request)
    name = str(body.get("name", "")).strip()
    if not name:
        raise HTTPException(400, "List name is required")
    wl = get_db().create_list(
        name, description=body.get("description", ""), context=body.get("context", "")
    )
    return _list_dict(wl)


@app.get("/api/lists")
async def api_get_lists():
    db = get_db()
    result = []
    for wl in db.get_all_lists():
        summary = db.get_list_summary(wl.id)
        result.append({
            **_list_dict(wl),
            "wordCount": summary["word_count"],
            "averageProgress": summary["average_progress"],
            "masteredWords": summary["mastered_words"],
        })
    return result


@app.get("/api/lists/{list_id}")
async def api_get_list(list_id: str):
    return _list_dict(_require_list(list_id))


@app.put("/api/lists/{list_id}")
async def api_update_list(list_id: str, request: Request):
    body = await _json_object(request)
    wl = get_db().update_list(
        list_id,
        name=body.get("name"),
        description=body.get("description"),
        context=body.get("context"),
    )
    if wl is None:
        raise NotFoundError("List not found")
    return _list_dict(wl)


@app.delete("/api/lists/{list_id}")
async def api_delete_list(list_id: str):
    result = get_db().delete_list(list_id)
    if result is None:
        raise NotFoundError("List not found")
    _log.info("Deleted list %s: %s", list_id, result)
    return {"message": "List deleted", **result}


@app.get("/api/lists/{list_id}/local-stats")
async def api_local_stats(list_id: str):
    db = get_db()
    return {
        "exerciseCount": db.count_content(list_id, "exercise"),
        "quizCount": db.count_content(list_id, "quiz"),
    }


# ── API: Learned points ───────────────────────────────────────────────────

@app.api_route("/api/lists/{list_id}/learned-points", methods=["POST", "PUT"])
async def api_learned_points(list_id: str, request: Request):
    body = await _json_object(request)
    results = body.get("results")
    if not isinstance(results, list) or not all(
        isinstance(r, dict)
        and isinstance(r.get("wordId"), str)
        and isinstance(r.get("correct"), bool)
        for r in results
    ):
        raise HTTPException(400, "results must be a list of {wordId, correct}")
    outcome = apply_batch_results(get_db(), list_id, results)
    return {"message": "Learned points updated successfully", **outcome}


@app.post("/api/lists/{list_id}/batch-update-points")
async def api_batch_update_points(list_id: str, request: Request):
    updates = await _json_body(request)
    if not isinstance(updates, list) or not all(
        isinstance(u, dict)
        and isinstance(u.get("wordId"), str)
        and isinstance(u.get("change"), (int, float))
        and not isinstance(u.get("change"), bool)
        for u in updates
    ):
        raise HTTPException(400, "Body must be a list of {wordId, change}")
    result = apply_point_changes(get_db(), list_id, updates)
    return {"message": "Points updated successfully.", "result": result}


# ── API: Quiz ─────────────────────────────────────────────────────────────

@app.post("/api/quiz/{list_id}/start")
async def api_quiz_start(list_id: str, request: Request):
    body = await _json_object(request)
    mode = _mode(body)
    db = get_db()
    s = get_settings()
    word_list = _require_list(list_id)

    if mode == "local":
        sample = get_local_content(db, list_id, "quiz", s.local_quiz_count)
        questions = require_minimum(sample, s.min_session_questions).items
    else:
        questions = await _ai_questions(word_list)

    return {
        "questions": [q.to_dict() for q in questions],
        "total_questions": db.count_list_words(list_id),
        "list": {"id": word_list.id, "name": word_list.name, "context": word_list.context},
    }


@app.post("/api/quiz/{list_id}/more")
async def api_quiz_more(list_id: str, request: Request):
    body = await _json_object(request)
    mode = _mode(body)
    s = get_settings()

    if mode == "local":
        sample = get_local_content(get_db(), list_id, "quiz", s.local_quiz_count)
        return {
            "questions": [q.to_dict() for q in sample.items],
            "insufficient": sample.insufficient,
        }
    questions = await _ai_questions(_require_list(list_id))
    return {"questions": [q.to_dict() for q in questions]}


# ── API: Learn (exercises) ────────────────────────────────────────────────

@app.post("/api/learn/{list_id}/exercises")
async def api_learn_exercises(list_id: str, request: Request):
    body = await _json_object(request)
    mode = _mode(body)
    s = get_settings()
    word_list = _require_list(list_id)

    if mode == "local":
        sample = get_local_content(get_db(), list_id, "exercise", s.local_exercise_count)
        return {
            "exercises": [e.to_dict() for e in sample.items],
            "insufficient": sample.insufficient,
        }

    words = _sample_list_words(list_id, s.exercise_size)
    exercises = await _get_generator().generate_exercises(
        list_id, words, word_list.context or "General", s.question_types
    )
    return {"exercises": [e.to_dict() for e in exercises]}


# ── API: Import ───────────────────────────────────────────────────────────

def _parse_import(list_id: str, entries: list, kind: str) -> tuple[list[ContentItem], int]:
    words = get_db().get_list_words(list_id)
    by_value = {normalize_word(w["value"]): w for w in words}
    items: list[ContentItem] = []
    dropped = 0
    for entry in entries:
        item = parse_content_item(entry, kind, list_id, by_value)
        reason = "malformed entry" if item is None else validate_content_shape(item)
        if reason is None and kind == "quiz" and item.word_id is None:
            reason = f"'{item.word}' is not in this list"
        if reason:
            _log.info("Import %s for list %s: dropping entry (%s)", kind, list_id, reason)
            dropped += 1
            continue
        items.append(item)
    return items, dropped


async def _import_content(list_id: str, request: Request, key: str, kind: str) -> dict:
    _require_list(list_id)
    body = await _json_object(request)
    entries = body.get(key)
    if not isinstance(entries, list):
        raise HTTPException(400, f'Invalid request body: "{key}" array not found.')

    items, dropped = _parse_import(list_id, entries, kind)
    if not items:
        raise HTTPException(400, f"No valid {key} found for the words in this list.")
    get_db().save_content_items(items)
    return {
        "message": f"Successfully imported and saved {len(items)} {key} for list {list_id}.",
        "imported": len(items),
        "dropped": dropped,
        "wordCount": len({normalize_word(i.word) for i in items}),
        "typeCounts": _type_counts(items),
    }


@app.post("/api/lists/{list_id}/import-exercises", status_code=201)
async def api_import_exercises(list_id: str, request: Request):
    return await _import_content(list_id, request, "exercises", "exercise")


@app.post("/api/lists/{list_id}/import-quizzes", status_code=201)
async def api_import_quizzes(list_id: str, request: Request):
    return await _import_content(list_id, request, "quizzes", "quiz")


@app.post("/api/lists/{list_id}/import-words", status_code=201)
async def api_import_words(list_id: str, request: Request):
    _require_list(list_id)
    body = await _json_object(request)
    words = body.get("words")
    if not isinstance(words, list):
        raise HTTPException(400, 'Invalid request body: "words" array not found.')

    s = get_settings()
    added = 0
    dropped = 0
    for entry in words:
        if (
            not isinstance(entry, dict)
            or not isinstance(entry.get("word"), str)
            or not normalize_word(entry["word"])
            or not isinstance(entry.get("definition"), str)
            or not entry["definition"].strip()
        ):
            _log.info("Import words for list %s: dropping entry %.200r", list_id, entry)
            dropped += 1
            continue
        _, created = await add_word_to_list(
            get_db(), None, list_id, entry["word"],
            predefined={
                "definition": entry["definition"],
                "phonetic": str(entry.get("phonetic") or ""),
            },
            dictionary_key=s.dictionary_api_key,
        )
        added += int(created)
    return {
        "message": f"Processed {len(words)} words. Added {added} new words to the list.",
        "addedCount": added,
        "dropped": dropped,
        "listId": list_id,
    }


# ── API: Stored content ───────────────────────────────────────────────────

@app.delete("/api/lists/{list_id}/quizzes")
async def api_delete_list_quizzes(list_id: str):
    n = get_db().delete_content_by_list(list_id, "quiz")
    return {"message": f"Successfully deleted {n} quizzes for list {list_id}.", "deleted": n}


@app.delete("/api/quizzes/{item_id}")
async def api_delete_quiz(item_id: str):
    if not get_db().delete_content_item("quiz", item_id):
        raise NotFoundError("Quiz not found")
    return {"message": "Quiz deleted"}


@app.delete("/api/exercises/{item_id}")
async def api_delete_exercise(item_id: str):
    if not get_db().delete_content_item("exercise", item_id):
        raise NotFoundError("Exercise not found")
    return {"message": "Exercise deleted"}


# ── API: Words ────────────────────────────────────────────────────────────

@app.post("/api/lists/{list_id}/words", status_code=201)
async def api_add_word(list_id: str, request: Request):
    body = await _json_object(request)
    value = str(body.get("value", "")).strip()
    if not value:
        raise HTTPException(400, "Word value is required")

    predefined = None
    if body.get("definition"):
        predefined = {"definition": body["definition"], "phonetic": body.get("phonetic", "")}
    db = get_db()
    _require_list(list_id)
    word, created = await add_word_to_list(
        db,
        _get_generator() if predefined is None else None,
        list_id,
        value,
        predefined=predefined,
        dictionary_key=get_settings().dictionary_api_key,
    )
    if not created:
        raise HTTPException(400, "Word already exists in this list")
    entry = next(w for w in db.get_list_words(list_id) if w["id"] == word.id)
    return _list_word_dict(entry)


@app.get("/api/lists/{list_id}/words")
async def api_list_words(list_id: str):
    _require_list(list_id)
    return [_list_word_dict(w) for w in get_db().get_list_words(list_id)]


@app.delete("/api/lists/{list_id}/words/{word_id}")
async def api_remove_word(list_id: str, word_id: str):
    db = get_db()
    word = db.get_word(word_id)
    if word is None or word.membership(list_id) is None:
        raise NotFoundError("Word not found")
    word_deleted = db.remove_membership(word_id, list_id)
    db.touch_list(list_id)
    return {"message": "Word deleted successfully", "wordDeleted": word_deleted}


@app.get("/api/words/{word_id}")
async def api_get_word(word_id: str):
    db = get_db()
    word = db.get_word(word_id)
    if word is None:
        raise NotFoundError("Word not found")
    contexts = []
    for m in word.memberships:
        wl = db.get_list(m.list_id)
        contexts.append({
            "listId": m.list_id,
            "listName": wl.name if wl else "Unknown List",
            "listContext": wl.context if wl else "",
            "meaning": m.meaning,
            "learnedPoint": m.learned_point,
        })
    return {
        "id": word.id,
        "value": word.value,
        "contexts": contexts,
        "definition": word.definition,
        "phonetic": word.phonetic,
        "dictionary": word.dictionary,
        "examples": word.examples,
    }


async def _word_context(word_id: str, request: Request):
    """Resolve a word and one of its list memberships from ``contextIndex``."""
    body = await _json_object(request)
    index = body.get("contextIndex", 0)
    db = get_db()
    word = db.get_word(word_id)
    if word is None or not isinstance(index, int) or not 0 <= index < len(word.memberships):
        raise NotFoundError("Word not found or invalid context")
    membership = word.memberships[index]
    wl = db.get_list(membership.list_id)
    return word, membership, (wl.context if wl and wl.context else "General")


@app.post("/api/words/{word_id}/generate-examples")
async def api_generate_examples(word_id: str, request: Request):
    word, membership, context = await _word_context(word_id, request)
    examples = await _get_generator().generate_examples(word.value, membership.meaning, context)
    stored = get_db().add_examples(word.id, [dataclasses.asdict(e) for e in examples])
    return {"examples": stored}


@app.post("/api/words/{word_id}/examples", status_code=201)
async def api_add_example(word_id: str, request: Request):
    body = await _json_object(request)
    sentence = str(body.get("sentence", "")).strip()
    if not sentence:
        raise HTTPException(400, "Sentence is required")
    db = get_db()
    word = db.get_word(word_id)
    if word is None:
        raise NotFoundError("Word not found")
    if len(word.examples) >= MAX_EXAMPLES:
        raise HTTPException(400, "Maximum number of examples reached")

    meaning = word.memberships[0].meaning if word.memberships else "General"
    details = await _get_generator().generate_example_details(sentence, meaning)
    example = {"id": uuid.uuid4().hex, "sentence": sentence, **details}
    db.add_examples(word.id, [example])
    return example


@app.delete("/api/words/{word_id}/examples/{example_id}", status_code=204)
async def api_delete_example(word_id: str, example_id: str):
    db = get_db()
    if db.get_word(word_id) is None:
        raise NotFoundError("Word or example not found")
    db.delete_example(word_id, example_id)
    return Response(status_code=204)


@app.post("/api/words/{word_id}/similar")
async def api_similar_words(word_id: str, request: Request):
    word, membership, context = await _word_context(word_id, request)
    similar = await _get_generator().generate_similar_words(
        word.value, membership.meaning, context
    )
    return {
        "word": word.value,
        "meaning": membership.meaning,
        "context": context,
        "similar_words": similar,
    }


@app.post("/api/words/validate-answer")
async def api_validate_answer(request: Request):
    """Grade a free-text (fill-in-the-blank) answer with the LLM."""
    body = await _json_object(request)
    user_answer = body.get("userAnswer")
    correct_answer = body.get("correctAnswer")
    context = body.get("context") or ""
    if (
        not isinstance(user_answer, str)
        or not isinstance(correct_answer, str)
        or not correct_answer.strip()
        or not isinstance(context, str)
    ):
        raise HTTPException(400, "userAnswer and correctAnswer must be strings")
    return await _get_generator().validate_answer(
        user_answer.strip(), correct_answer.strip(), context
    )


@app.post("/api/lists/{list_id}/light-reading")
async def api_light_reading(list_id: str):
    word_list = _require_list(list_id)
    words = get_db().get_list_words(list_id)
    if not words:
        raise HTTPException(400, "No words found in this list")
    return await _get_generator().generate_light_reading(words, word_list.context or "General")


# ── API: Audio ────────────────────────────────────────────────────────────

@app.get("/api/audio/{audio_hash}.mp3")
async def api_audio(audio_hash: str):
    s = get_settings()
    audio_path = s.audio_cache_full_path / f"{audio_hash}.mp3"
    if not audio_path.exists():
        raise HTTPException(404, "Audio not found")
    return FileResponse(audio_path, media_type="audio/mpeg")


@app.post("/api/tts/generate")
async def api_tts_generate(request: Request):
    """Generate TTS for arbitrary text. Returns the audio hash."""
    body = await _json_object(request)
    text = str(body.get("text", "")).strip()
    if not text:
        raise HTTPException(400, "No text provided")

    tts = _get_tts()
    s = get_settings()
    audio_path = await get_or_create_audio(text, tts, get_db(), s.audio_cache_full_path)
    if audio_path is None:
        raise HTTPException(500, "TTS generation failed")
    return {"audio_hash": audio_cache_key(text, tts.name())}


@app.get("/api/lists/{list_id}/pronunciation-audio")
async def api_pronunciation_audio(list_id: str):
    _require_list(list_id)
    db = get_db()
    words = [w["value"] for w in db.get_list_words(list_id)]
    if not words:
        raise HTTPException(400, "No words found in this list")
    audio_path = await build_list_pronunciation(
        words, _get_tts(), db, get_settings().audio_cache_full_path
    )
    if audio_path is None:
        raise HTTPException(500, "Could not build pronunciation audio")
    return FileResponse(audio_path, media_type="audio/mpeg")


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    global _prompts
    body = await _json_object(request)
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    updates = {k: v for k, v in body.items() if k in known}
    for k, v in updates.items():
        reason = check_setting(k, v)
        if reason:
            raise HTTPException(400, reason)
    for k, v in updates.items():
        setattr(s, k, v)
    save_settings(s)
    if "prompt_dir" in body:
        _prompts = None
    return s.to_dict()
