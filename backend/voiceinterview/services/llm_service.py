import asyncio
import logging
from typing import AsyncIterator

from openai import AsyncOpenAI

from core.config import LLM, LlmConfig

logger = logging.getLogger("llm_service")


def build_messages(system_prompt: str, history: list[dict], user_text: str) -> list[dict]:
    messages = [{"role": "system", "content": system_prompt}]
    for item in history or []:
        role = str(item.get("role") or "")
        content = str(item.get("content") or "").strip()
        if role in {"user", "assistant"} and content:
            messages.append({"role": role, "content": content})
    messages.append({"role": "user", "content": str(user_text or "")})
    return messages


class LanguageModelService:
    """Chat completions against any OpenAI-compatible endpoint."""

    def __init__(self, config: LlmConfig = LLM, client: AsyncOpenAI | None = None):
        self.config = config
        self.client = client or AsyncOpenAI(
            api_key=config.api_key or "missing-key",
            base_url=config.base_url,
            timeout=config.timeout_sec,
            max_retries=0,
        )

    async def complete(self, system_prompt: str, history: list[dict], user_text: str) -> str:
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.config.model,
                messages=build_messages(system_prompt, history, user_text),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            ),
            timeout=self.config.timeout_sec,
        )
        message = response.choices[0].message.content
        return str(message or "").strip()

    async def stream(self, system_prompt: str, history: list[dict], user_text: str) -> AsyncIterator[str]:
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.config.model,
                messages=build_messages(system_prompt, history, user_text),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                stream=True,
            ),
            timeout=self.config.timeout_sec,
        )

        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content
