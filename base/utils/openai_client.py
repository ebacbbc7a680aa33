# base/utils/openai_client.py

import os
import logging
import asyncio
from openai import AsyncOpenAI

_SEMAPHORE = asyncio.Semaphore(int(os.getenv("OPENAI_CONCURRENCY", "4")))

class OpenAIWrapper:
    def __init__(self, api_key: str = None, model: str = None):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self._client = None

    def client(self):
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def complete(self, system: str, prompt: str, max_tokens: int = 4000, temperature: float = 0.7) -> str:
        async with _SEMAPHORE:
            try:
                resp = await self.client().chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
            except Exception:
                logging.exception("OpenAI completion failed")
                raise
        if not resp.choices or not resp.choices[0].message.content:
            return ""
        return resp.choices[0].message.content
