import logging
from typing import Any

import httpx

from lexify.application.cancellation import CancellationToken
from lexify.domain.constants import (
    FILL_BLANK_PATH,
    MULTIPLE_CHOICE_PATH,
    REQUEST_TIMEOUT,
    WORD_DETAILS_PATH,
)
from lexify.domain.errors import MalformedResponseError
from lexify.domain.interfaces import QuestionService, WordDetailsProvider


class HttpQuestionService(QuestionService, WordDetailsProvider):
    """Adapter for the AI generation service (JSON over HTTP)."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.logger.debug(f"HttpQuestionService initialized with base_url={self.base_url}")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def generate_multiple_choice(
        self, word: str, decoys: list[str], token: CancellationToken
    ) -> dict[str, Any]:
        return await self._invoke(
            MULTIPLE_CHOICE_PATH, token, word=word, libraryWords=[word, *decoys]
        )

    async def generate_fill_blank(self, word: str, token: CancellationToken) -> dict[str, Any]:
        return await self._invoke(FILL_BLANK_PATH, token, word=word)

    async def generate_details(self, word: str, token: CancellationToken) -> str:
        data = await self._invoke(WORD_DETAILS_PATH, token, word=word)
        details = data.get("details")
        if not isinstance(details, str) or not details.strip():
            raise MalformedResponseError("response is missing required details field")
        return details

    async def _invoke(self, path: str, token: CancellationToken, **payload) -> dict[str, Any]:
        token.raise_if_cancelled()
        try:
            resp = await self._get_client().post(path, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            self.logger.warning(f"Request to {path} failed: {e}")
            raise
        except ValueError as e:
            raise MalformedResponseError(f"response from {path} is not JSON") from e

        if not isinstance(data, dict):
            raise MalformedResponseError(f"response from {path} is not an object")
        if data.get("error"):
            raise MalformedResponseError(f"service error: {data['error']}")
        return data

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
