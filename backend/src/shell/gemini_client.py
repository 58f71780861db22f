"""Gemini Client - HTTP access to the hosted language model.

One POST per call to the generateContent endpoint. Replies are relayed as
text; turning them into data is left to core.parsing.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from ..core.parsing import Err, ParseResult, parse_reply


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class LLMError(RuntimeError):
    """The model call failed or returned no usable candidate."""


@dataclass
class GeminiConfig:
    """Configuration for the Gemini client.

    Attributes:
        api_key: Gemini API key
        model: Default model name
        guidance_model: Model used for guidance generation
        timeout: Request timeout in seconds
        base_url: API root
    """

    api_key: str | None = None
    model: str = "gemini-1.5-flash"
    guidance_model: str = "gemini-1.5-pro"
    timeout: float = 60.0
    base_url: str = GEMINI_BASE_URL

    @classmethod
    def from_env(cls) -> "GeminiConfig":
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY"),
            model=os.environ.get("GEMINI_MODEL", "gemini-1.5-flash"),
            guidance_model=os.environ.get("GEMINI_GUIDANCE_MODEL", "gemini-1.5-pro"),
            timeout=float(os.environ.get("GEMINI_TIMEOUT", "60")),
        )


def candidate_text(payload: Any) -> str | None:
    """Pull ``candidates[0].content.parts[0].text`` out of a reply body."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text.strip() if isinstance(text, str) else None


class GeminiClient:
    """Client for the Gemini generateContent API."""

    def __init__(
        self,
        config: GeminiConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Gemini client.

        Args:
            config: Gemini configuration
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config or GeminiConfig()
        self._transport = transport

    async def generate(
        self,
        prompt: str,
        *,
        json_output: bool = True,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Send a prompt and return the first candidate's text.

        Args:
            prompt: Prompt text
            json_output: Ask for an application/json response
            model: Override the configured model
            temperature: Optional sampling temperature

        Returns:
            Reply text

        Raises:
            LLMError: On missing key, transport failure, non-2xx or empty reply
        """
        if not self.config.api_key:
            raise LLMError("GEMINI_API_KEY is not set")

        model_name = model or self.config.model
        url = f"{self.config.base_url}/models/{model_name}:generateContent"
        generation_config: dict[str, Any] = {
            "responseMimeType": "application/json" if json_output else "text/plain",
        }
        if temperature is not None:
            generation_config["temperature"] = temperature
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        logger.debug("Calling %s (%d prompt chars)", model_name, len(prompt))
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout) as client:
                response = await client.post(url, params={"key": self.config.api_key}, json=body)
        except httpx.HTTPError as e:
            logger.error("Gemini request failed: %s", str(e))
            raise LLMError(f"Gemini request failed: {e}") from e

        if response.status_code >= 400:
            logger.error("Gemini error %d: %s", response.status_code, response.text[:500])
            raise LLMError(f"Gemini API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise LLMError("Gemini returned a non-JSON body") from e

        text = candidate_text(payload)
        if not text:
            raise LLMError("AI returned an empty or invalid response structure.")
        return text

    async def generate_model(self, prompt: str, schema: type[M], **kwargs: Any) -> ParseResult[M]:
        """Generate and validate a JSON object reply.

        Call failures are reported as Err like any parse failure.
        """
        try:
            text = await self.generate(prompt, **kwargs)
        except LLMError as e:
            return Err(str(e))
        return parse_reply(text, schema)
