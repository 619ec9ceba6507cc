from __future__ import annotations

from pathlib import Path

from vocab_lists.providers.base import TTSProvider


class EdgeTTSProvider(TTSProvider):
    """Microsoft Edge voices. Audio chunks are streamed straight to the mp3 file."""

    def __init__(self, voice: str = "en-US-AriaNeural", rate: str = "+0%"):
        self.voice = voice
        self.rate = rate

    async def synthesize(self, text: str, output_path: Path) -> Path:
        import edge_tts

        text = text.strip()
        if not text:
            raise ValueError("Nothing to synthesize")

        communicate = edge_tts.Communicate(text, self.voice, rate=self.rate)
        received = 0
        with output_path.open("wb") as out:
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    out.write(chunk["data"])
                    received += len(chunk["data"])
        if not received:
            output_path.unlink(missing_ok=True)
            raise RuntimeError(f"edge-tts returned no audio for {text[:40]!r}")
        return output_path

    def name(self) -> str:
        # Rate changes the audio, so it is part of the cache identity
        if self.rate == "+0%":
            return f"edge-tts/{self.voice}"
        return f"edge-tts/{self.voice}@{self.rate}"
