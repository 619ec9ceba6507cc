from __future__ import annotations

import os

from vocab_lists.providers.base import LLMProvider


class OpenAIProvider(LLMProvider):
    def __init__(self, model: str = "gpt-4o-mini"):
        import openai
        self.client = openai.AsyncOpenAI(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
            base_url=os.environ.get("OPENAI_BASE_URL") or None,
        )
        self.model = model

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float = 0.7
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=messages,
        )
        return resp.choices[0].message.content or ""

    def name(self) -> str:
        return f"openai/{self.model}"
