"""Command line for vocab-lists.

Usage:
  python -m vocab_lists serve [--port PORT] [--host HOST]
  python -m vocab_lists stop | restart | status
  python -m vocab_lists stats
  python -m vocab_lists cleanup-audio [--max-age-days N]
"""
from __future__ import annotations

import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"
DEFAULT_PORT = 8765

STATS_LABELS = (
    ("total_lists", "Lists"),
    ("total_words", "Words"),
    ("total_memberships", "List memberships"),
    ("mastered_memberships", "Mastered (>= 80)"),
    ("average_progress", "Average progress"),
    ("stored_exercises", "Stored exercises"),
    ("stored_quizzes", "Stored quizzes"),
)


def main(argv: list[str] | None = None):
    args = sys.argv[1:] if argv is None else argv
    command, rest = (args[0], args[1:]) if args else ("serve", [])

    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print("Commands: " + ", ".join(COMMANDS))
        sys.exit(1)
    handler(rest)


def _flag(args: list[str], name: str, default: str) -> str:
    if name in args:
        i = args.index(name)
        if i + 1 < len(args):
            return args[i + 1]
    return default


def _server_pid() -> int | None:
    """PID of a live server; a PID file naming a dead process is removed."""
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
    except FileNotFoundError:
        return None
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None
    return pid


@contextmanager
def _open_store():
    from vocab_lists.config import load_settings
    from vocab_lists.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    try:
        yield settings, db
    finally:
        db.close()


def _serve(args: list[str]):
    import uvicorn

    running = _server_pid()
    if running is not None:
        print(f"Vocab Lists is already running (PID {running}); stop or restart it.")
        sys.exit(1)

    host = _flag(args, "--host", "127.0.0.1")
    port = int(_flag(args, "--port", str(DEFAULT_PORT)))
    PID_FILE.write_text(str(os.getpid()))
    print(f"Vocab Lists on http://{host}:{port} (Ctrl+C to stop)")
    try:
        uvicorn.run("vocab_lists.app:app", host=host, port=port, timeout_graceful_shutdown=5)
    finally:
        PID_FILE.unlink(missing_ok=True)


def _stop(args: list[str] | None = None) -> bool:
    pid = _server_pid()
    if pid is None:
        print("Vocab Lists is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        pid = None
    PID_FILE.unlink(missing_ok=True)
    print(f"Stopped PID {pid}." if pid else "Server had already exited.")
    return pid is not None


def _restart(args: list[str]):
    if _stop():
        time.sleep(1)
    _serve(args)


def _status(args: list[str]):
    pid = _server_pid()
    print(f"Vocab Lists is running (PID {pid})." if pid else "Vocab Lists is not running.")


def _stats(args: list[str]):
    with _open_store() as (_, db):
        stats = db.get_stats()
    width = max(len(label) for _, label in STATS_LABELS) + 2
    for key, label in STATS_LABELS:
        print(f"{label + ':':<{width}}{stats[key]}")


def _cleanup_audio(args: list[str]):
    from vocab_lists.audio import cleanup_audio_cache

    with _open_store() as (settings, db):
        max_age = int(_flag(args, "--max-age-days", str(settings.audio_cache_max_age_days)))
        deleted = cleanup_audio_cache(settings.audio_cache_full_path, max_age, db=db)
    print(f"Removed {deleted} cached audio file(s) older than {max_age} days.")


COMMANDS = {
    "serve": _serve,
    "stop": _stop,
    "restart": _restart,
    "status": _status,
    "stats": _stats,
    "cleanup-audio": _cleanup_audio,
}


if __name__ == "__main__":
    main()
