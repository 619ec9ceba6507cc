from __future__ import annotations

import asyncio
import os
from pathlib import Path

from vocab_lists.providers.base import TTSProvider


class ElevenLabsProvider(TTSProvider):
    def __init__(self, voice_id: str = "21m00Tcm4TlvDq8ikWAM", model_id: str = "eleven_flash_v2_5"):
        from elevenlabs.client import ElevenLabs
        self.client = ElevenLabs(
            api_key=os.environ.get("ELEVEN_LABS_API_KEY", ""),
        )
        self.voice_id = voice_id
        self.model_id = model_id

    def _write(self, text: str, output_path: Path) -> Path:
        chunks = self.client.text_to_speech.convert(
            voice_id=self.voice_id,
            text=text,
            model_id=self.model_id,
            output_format="mp3_44100_128",
        )
        with open(output_path, "wb") as f:
            for chunk in chunks:
                f.write(chunk)
        return output_path

    async def synthesize(self, text: str, output_path: Path) -> Path:
        # The SDK client is synchronous
        return await asyncio.to_thread(self._write, text, output_path)

    def name(self) -> str:
        return f"elevenlabs/{self.voice_id}"
