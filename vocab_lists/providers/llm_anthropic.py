from __future__ import annotations

import os

from vocab_lists.providers.base import LLMProvider


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514", max_tokens: int = 4096):
        import anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model
        self.max_tokens = max_tokens

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float = 0.7
    ) -> str:
        kwargs: dict = {}
        if system:
            kwargs["system"] = system
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        return "".join(b.text for b in message.content if b.type == "text")

    def name(self) -> str:
        return f"anthropic/{self.model}"
