import logging
from typing import Protocol

import openai

from domain.aopenai import quick_chat


logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


class LLMService:
    def __init__(
        self,
        model: str,
        openai_client: openai.AsyncClient | None = None,
    ) -> None:
        self._openai_client = openai_client
        self.model = model

    @property
    def openai_client(self) -> openai.AsyncClient:
        # Created lazily so the app can start without OPENAI_API_KEY set.
        if self._openai_client is None:
            self._openai_client = openai.AsyncClient()
        return self._openai_client

    async def generate(self, prompt: str) -> str:
        logger.info("Requesting completion from %s", self.model)
        return await quick_chat(prompt, openai_client=self.openai_client, model=self.model)

    async def close(self) -> None:
        if self._openai_client is not None:
            await self._openai_client.close()
