"""Async client for the Gemini generateContent REST endpoint.

The client never raises for model or transport problems. Failures come back
as strings starting with ``ERROR_PREFIX`` so callers can tell "no result"
apart from an empty but valid answer without catching exceptions.
"""

import logging

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error:"


def is_error(response: str) -> bool:
    """True if a gateway response is a failure sentinel."""
    return response.startswith(ERROR_PREFIX)


class GeminiPart(BaseModel):
    text: str = ""


class GeminiContent(BaseModel):
    parts: list[GeminiPart] = Field(default_factory=list)
    role: str = ""


class GeminiCandidate(BaseModel):
    content: GeminiContent = Field(default_factory=GeminiContent)
    finishReason: str = ""


class GeminiResponse(BaseModel):
    """Raw response from ``models/{model}:generateContent``."""

    candidates: list[GeminiCandidate] = Field(default_factory=list)
    usageMetadata: dict = Field(default_factory=dict)


class GeminiClient:
    """Async HTTP client for the Gemini generative language API.

    Usage::

        async with GeminiClient(api_key, model="gemini-2.5-flash") as gemini:
            text = await gemini.generate("Summarize: ...")
            if is_error(text):
                ...
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def __aenter__(self) -> "GeminiClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the first candidate's text.

        Returns:
            The model text, or an ``Error:``-prefixed sentinel on failure.
        """
        if not self._model:
            return f"{ERROR_PREFIX} GEMINI_MODEL_NAME is not set."

        payload: dict = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            response = await self._client.post(
                f"/models/{self._model}:generateContent",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.HTTPError as exc:
            logger.error("Could not reach Gemini API: %s", exc)
            return f"{ERROR_PREFIX} Could not connect to Gemini API."

        if response.status_code != 200:
            logger.error(
                "Gemini API error - code: %d | model: %s | body: %s",
                response.status_code,
                self._model,
                response.text,
            )
            return f"{ERROR_PREFIX} API call failed."

        try:
            raw = GeminiResponse.model_validate(response.json())
        except ValueError:
            logger.error("Gemini API returned an unreadable body: %s", response.text)
            return f"{ERROR_PREFIX} API returned no content."

        if not raw.candidates or not raw.candidates[0].content.parts:
            logger.warning("Gemini API returned no content. Body: %s", response.text)
            return f"{ERROR_PREFIX} API returned no content."

        logger.debug("Gemini %s usage: %s", self._model, raw.usageMetadata)
        return raw.candidates[0].content.parts[0].text
