"""OpenAI-compatible LLM client with slot-based configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from huzzology.config import Settings
from huzzology.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

EMBEDDING_SLOT = "embedding"
GENERATION_SLOT = "generation"


@dataclass
class LLMSlotConfig:
    """Configuration for a single LLM slot."""

    slot: str
    provider_name: str
    api_endpoint: str
    model_id: str
    api_key: str
    max_tokens: int | None = None
    temperature: float = 0.7
    extra_params: dict[str, Any] = field(default_factory=dict)


class LLMClient:
    """Vendor-agnostic client for chat completions and embeddings."""

    def __init__(self, timeout: float = 120.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._slots: dict[str, LLMSlotConfig] = {}

    def configure_slot(self, config: LLMSlotConfig) -> None:
        """Register a slot configuration."""
        self._slots[config.slot] = config

    def get_slot(self, slot: str) -> LLMSlotConfig:
        """Get configuration for a slot; a missing slot or key is a configuration error."""
        if slot not in self._slots:
            raise ConfigurationError(f"LLM slot '{slot}' not configured")
        config = self._slots[slot]
        if not config.api_key:
            raise ConfigurationError(f"No API key configured for LLM slot '{slot}'")
        return config

    @staticmethod
    def _raise_for_status_with_context(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
            return
        except httpx.HTTPStatusError as exc:
            detail = response.text.strip()
            try:
                body = response.json()
                if isinstance(body, dict):
                    if isinstance(body.get("error"), dict):
                        detail = body["error"].get("message") or body["error"].get("code") or detail
                    elif body.get("error"):
                        detail = str(body["error"])
                    elif body.get("message"):
                        detail = str(body["message"])
            except ValueError:
                pass
            if len(detail) > 400:
                detail = detail[:400]
            raise ProviderError(
                f"LLM API request failed ({response.status_code}) at {response.request.url}: {detail}",
                status_code=response.status_code,
            ) from exc

    async def _post(self, config: LLMSlotConfig, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{config.api_endpoint.rstrip('/')}/{path}"
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"LLM API request to {url} failed: {exc!r}") from exc
        self._raise_for_status_with_context(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"LLM API at {url} returned non-JSON body") from exc

    async def generate(
        self,
        slot: str,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: dict | None = None,
    ) -> str:
        """Generate a completion using the specified slot.

        Returns the assistant message content.
        """
        config = self.get_slot(slot)

        payload: dict[str, Any] = {
            "model": config.model_id,
            "messages": messages,
            "temperature": temperature if temperature is not None else config.temperature,
        }

        tokens = max_tokens or config.max_tokens
        if tokens:
            payload["max_tokens"] = tokens

        if response_format:
            payload["response_format"] = response_format

        payload.update(config.extra_params)

        logger.info("LLM request slot=%s model=%s", slot, config.model_id)
        data = await self._post(config, "chat/completions", payload)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(f"Malformed completion response for slot '{slot}'") from exc

        logger.info("LLM response slot=%s tokens=%s", slot, data.get("usage", {}))
        return content or ""

    async def generate_embeddings(
        self,
        slot: str,
        texts: list[str],
    ) -> list[list[float]]:
        """Generate embeddings using the specified slot.

        Returns one vector per input text, in input order.
        """
        config = self.get_slot(slot)
        payload = {
            "model": config.model_id,
            "input": texts,
        }
        data = await self._post(config, "embeddings", payload)
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            return [item["embedding"] for item in items]
        except (KeyError, TypeError) as exc:
            raise ProviderError(f"Malformed embeddings response for slot '{slot}'") from exc

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def build_llm_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> LLMClient:
    """Create a client with the embedding and generation slots configured.

    Raises ConfigurationError when no API key is set; no request is made.
    """
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY not set; embedding and text generation are unavailable")
    client = LLMClient(timeout=settings.llm_timeout_seconds, transport=transport)
    client.configure_slot(LLMSlotConfig(
        slot=EMBEDDING_SLOT, provider_name="openai", api_endpoint=settings.openai_api_base,
        model_id=settings.embedding_model, api_key=settings.openai_api_key,
    ))
    client.configure_slot(LLMSlotConfig(
        slot=GENERATION_SLOT, provider_name="openai", api_endpoint=settings.openai_api_base,
        model_id=settings.generation_model, api_key=settings.openai_api_key,
    ))
    return client


def strip_json_fencing(text: str) -> str:
    """Strip markdown JSON fencing if present."""
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1 :] if first_newline != -1 else text[3:]
    if text.endswith("```"):
        text = text[:-3].rstrip()
    return text


async def complete_with_validation(
    complete: Callable[[str], Any],
    prompt: str,
    validate_fn: Callable[[Any], None],
    *,
    repair_retry: bool = True,
) -> Any:
    """Complete a prompt, parse JSON, validate, with one repair retry.

    Args:
        complete: Async callable taking a prompt and returning raw text
        prompt: Prompt expected to produce JSON
        validate_fn: Callable that takes parsed data and raises ValueError on invalid

    Returns:
        Validated parsed JSON

    Raises:
        ValueError: If parsing or validation fails after the retry
        ProviderError: If a provider call fails
    """
    response_text = await complete(prompt)
    text = strip_json_fencing(response_text)

    try:
        data = json.loads(text)
        validate_fn(data)
        return data
    except ValueError as e:
        if not repair_retry:
            raise
        logger.warning("LLM output validation failed, attempting repair: %s", e)
        error_detail = str(e)

    repair_prompt = (
        f"{prompt}\n\nYour previous answer was invalid:\n{text}\n\n"
        f"Validation error:\n{error_detail}\n\n"
        "Return ONLY the corrected JSON, with no other text."
    )
    text_2 = strip_json_fencing(await complete(repair_prompt))
    data_2 = json.loads(text_2)
    validate_fn(data_2)
    return data_2
