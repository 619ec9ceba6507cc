from __future__ import annotations

import logging
import time

import httpx

from vocab_lists.providers.base import LLMProvider

log = logging.getLogger("vocab_lists.llm")


class OllamaProvider(LLMProvider):
    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen3:8b"):
        self.base_url = base_url.rstrip("/")
        self.model = model

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float = 0.7
    ) -> str:
        log.debug("Prompt (%s):\n%s", self.model, prompt)
        body: dict = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "think": False,
            "options": {"temperature": temperature},
        }
        if system:
            body["system"] = system

        t0 = time.monotonic()
        async with httpx.AsyncClient(timeout=180.0) as client:
            resp = await client.post(f"{self.base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        log.info(
            "Ollama %s answered in %.1fs (%s tokens)",
            self.model, time.monotonic() - t0, data.get("eval_count", "?"),
        )
        return data["response"]

    def name(self) -> str:
        return f"ollama/{self.model}"
