"""Pronunciation audio: cached TTS files and whole-list recordings."""
from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vocab_lists.db import Database
    from vocab_lists.providers.base import TTSProvider

_log = logging.getLogger("vocab_lists.audio")

SECONDS_PER_DAY = 24 * 60 * 60


def audio_cache_key(text: str, voice: str) -> str:
    return hashlib.sha256(f"{voice}|{text}".encode()).hexdigest()[:16]


def _cached_file(db: Database, key: str) -> Path | None:
    cached_path = db.get_audio_cache(key)
    if cached_path:
        p = Path(cached_path)
        if p.exists():
            return p
        # File was swept by cleanup; forget the row
        db.delete_audio_cache(key)
    return None


async def get_or_create_audio(
    text: str,
    tts: TTSProvider,
    db: Database,
    cache_dir: Path,
) -> Path | None:
    """Get cached audio or synthesize it. Returns None if TTS fails."""
    cache_dir.mkdir(parents=True, exist_ok=True)
    key = audio_cache_key(text, tts.name())

    cached = _cached_file(db, key)
    if cached:
        return cached

    output_path = cache_dir / f"{key}.mp3"
    try:
        await tts.synthesize(text, output_path)
    except Exception as e:
        _log.warning("TTS failed for %.50r via %s: %s", text, tts.name(), e)
        output_path.unlink(missing_ok=True)
        return None
    db.set_audio_cache(key, str(output_path), tts.name())
    return output_path


async def _concat_mp3(parts: list[Path], output_path: Path) -> None:
    list_file = output_path.with_suffix(".txt")
    list_file.write_text("".join(f"file '{p.resolve()}'\n" for p in parts))
    try:
        proc = await asyncio.create_subprocess_exec(
            "ffmpeg", "-y", "-f", "concat", "-safe", "0",
            "-i", str(list_file),
            "-c", "copy",
            str(output_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
    finally:
        list_file.unlink(missing_ok=True)
    if proc.returncode != 0:
        raise RuntimeError(
            f"ffmpeg failed with code {proc.returncode}: {stderr.decode(errors='replace')[-300:]}"
        )


async def build_list_pronunciation(
    words: list[str],
    tts: TTSProvider,
    db: Database,
    cache_dir: Path,
) -> Path | None:
    """One mp3 with every word of a list read out in order.

    Each word is synthesized (or reused) on its own, then joined with the
    ffmpeg concat demuxer. The joined file is cached under the combined key.
    """
    if not words:
        return None
    cache_dir.mkdir(parents=True, exist_ok=True)
    key = audio_cache_key("\n".join(words), f"list:{tts.name()}")

    cached = _cached_file(db, key)
    if cached:
        return cached

    parts: list[Path] = []
    for word in words:
        path = await get_or_create_audio(word, tts, db, cache_dir)
        if path is None:
            _log.warning("Skipping '%s' in list pronunciation", word)
            continue
        parts.append(path)
    if not parts:
        return None

    output_path = cache_dir / f"{key}.mp3"
    try:
        await _concat_mp3(parts, output_path)
    except (OSError, RuntimeError) as e:
        _log.warning("Could not join list pronunciation: %s", e)
        output_path.unlink(missing_ok=True)
        return None
    db.set_audio_cache(key, str(output_path), tts.name())
    return output_path


def cleanup_audio_cache(
    cache_dir: Path,
    max_age_days: int = 7,
    db: Database | None = None,
    now: float | None = None,
) -> int:
    """Delete cached audio files older than *max_age_days*.

    Returns how many files were removed. Problems with a single file are
    logged and the sweep goes on.
    """
    if not cache_dir.is_dir():
        return 0
    now = time.time() if now is None else now
    max_age = max_age_days * SECONDS_PER_DAY

    deleted = 0
    for path in cache_dir.iterdir():
        if not path.is_file():
            continue
        try:
            if now - path.stat().st_mtime <= max_age:
                continue
            path.unlink()
        except OSError as e:
            _log.warning("Could not remove cached audio %s: %s", path.name, e)
            continue
        if db is not None:
            db.delete_audio_cache_by_path(str(path))
        deleted += 1

    _log.info("Audio cache cleanup removed %d file(s) from %s", deleted, cache_dir)
    return deleted
