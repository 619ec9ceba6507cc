from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "ollama",
    "llm_model": "qwen3:8b",
    "ollama_url": "http://localhost:11434",
    "tts_provider": "edge-tts",
    "tts_voice": "en-US-AriaNeural",
    "elevenlabs_model": "eleven_flash_v2_5",
    "db_path": "vocab_lists.db",
    "audio_cache_dir": "audio_cache",
    "audio_cache_max_age_days": 7,
    "prompt_dir": "",
    "quiz_size": 5,
    "exercise_size": 5,
    "local_quiz_count": 5,
    "local_exercise_count": 15,
    "min_session_questions": 5,
    "question_types": [
        "multiple_choice",
        "fill_blank",
        "true_false",
        "sentence_completion",
    ],
    "dictionary_api_key": "",
    "base_language": "English",
    "target_language": "English",
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    tts_provider: str = DEFAULTS["tts_provider"]
    tts_voice: str = DEFAULTS["tts_voice"]
    elevenlabs_model: str = DEFAULTS["elevenlabs_model"]
    db_path: str = DEFAULTS["db_path"]
    audio_cache_dir: str = DEFAULTS["audio_cache_dir"]
    audio_cache_max_age_days: int = DEFAULTS["audio_cache_max_age_days"]
    prompt_dir: str = DEFAULTS["prompt_dir"]
    quiz_size: int = DEFAULTS["quiz_size"]
    exercise_size: int = DEFAULTS["exercise_size"]
    local_quiz_count: int = DEFAULTS["local_quiz_count"]
    local_exercise_count: int = DEFAULTS["local_exercise_count"]
    min_session_questions: int = DEFAULTS["min_session_questions"]
    question_types: list[str] = field(
        default_factory=lambda: list(DEFAULTS["question_types"])
    )
    dictionary_api_key: str = DEFAULTS["dictionary_api_key"]
    base_language: str = DEFAULTS["base_language"]
    target_language: str = DEFAULTS["target_language"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def audio_cache_full_path(self) -> Path:
        return self.project_root / self.audio_cache_dir

    @property
    def prompt_full_path(self) -> Path | None:
        if not self.prompt_dir:
            return None
        return self.project_root / self.prompt_dir

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "ollama_url": self.ollama_url,
            "tts_provider": self.tts_provider,
            "tts_voice": self.tts_voice,
            "elevenlabs_model": self.elevenlabs_model,
            "db_path": self.db_path,
            "audio_cache_dir": self.audio_cache_dir,
            "audio_cache_max_age_days": self.audio_cache_max_age_days,
            "prompt_dir": self.prompt_dir,
            "quiz_size": self.quiz_size,
            "exercise_size": self.exercise_size,
            "local_quiz_count": self.local_quiz_count,
            "local_exercise_count": self.local_exercise_count,
            "min_session_questions": self.min_session_questions,
            "question_types": self.question_types,
            "dictionary_api_key": self.dictionary_api_key,
            "base_language": self.base_language,
            "target_language": self.target_language,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")


def check_setting(name: str, value) -> str | None:
    """Reason *value* is unusable for setting *name*, or None if it is fine.

    Values must have the type of the default; counts and ages must not be
    negative and ``question_types`` must be a list of strings.
    """
    default = DEFAULTS[name]
    if isinstance(default, bool) or isinstance(value, bool):
        if type(value) is not type(default):
            return f"{name} must be {type(default).__name__}"
        return None
    if isinstance(default, int):
        if not isinstance(value, int):
            return f"{name} must be an integer"
        if value < 0:
            return f"{name} must not be negative"
        return None
    if isinstance(default, list):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return f"{name} must be a list of strings"
        return None
    if not isinstance(value, type(default)):
        return f"{name} must be {type(default).__name__}"
    return None
