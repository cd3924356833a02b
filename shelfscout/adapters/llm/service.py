"""
LLM Service - Unified language model interface.

Routes between:
- OpenAI-compatible chat completions (JSON mode via response_format)
- Gemini generateContent (JSON mode via responseMimeType)
- Ollama local models (JSON mode via format)

All providers are reached over plain httpx; any transport, status or
payload problem surfaces as LLMError for the caller to degrade around.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from shelfscout.config import LLMError

if TYPE_CHECKING:
    from shelfscout.config import Settings

logger = logging.getLogger(__name__)

__all__ = ["LLMResponse", "LLMService", "create_llm_service"]

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"
PROVIDERS = ("openai", "gemini", "ollama")


@dataclass
class LLMResponse:
    """Response from LLM generation."""

    text: str
    model: str
    provider: str  # "openai", "gemini" or "ollama"
    tokens_used: int | None = None


class LLMService:
    """
    LLM service over a single configured provider.

    Example:
        >>> llm = LLMService("openai", "gpt-4o-mini", api_key="sk-...")
        >>> response = await llm.generate("Translate: שר הטבעות")
        >>> hints = await llm.generate_json("Query: tolkien ring", system_instruction=PROMPT)
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.2,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize LLM service.

        Args:
            provider: "openai", "gemini" or "ollama"
            model: Model name for the provider
            api_key: Provider API key (not used by Ollama)
            base_url: Override the provider endpoint root
            temperature: Default sampling temperature
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests pass one with a mock transport)
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {provider}")

        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.base_url = (base_url or self._default_base_url(provider)).rstrip("/")
        self.temperature = temperature
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def _default_base_url(provider: str) -> str:
        return {
            "openai": "https://api.openai.com/v1",
            "gemini": GEMINI_URL,
            "ollama": "http://localhost:11434",
        }[provider]

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate text response.

        Args:
            prompt: User prompt
            system_instruction: System prompt
            temperature: Override default temperature
            json_mode: Ask the provider for a JSON object

        Returns:
            LLMResponse with generated text

        Raises:
            LLMError: Provider unreachable, rate limited or returned an error
        """
        temp = self.temperature if temperature is None else temperature

        if self.provider == "openai":
            return await self._generate_openai(prompt, system_instruction, temp, json_mode)
        if self.provider == "gemini":
            return await self._generate_gemini(prompt, system_instruction, temp, json_mode)
        return await self._generate_ollama(prompt, system_instruction, temp, json_mode)

    async def generate_json(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> dict[str, Any]:
        """Generate and parse a JSON object response."""
        json_instruction = (system_instruction or "") + "\n\nRespond with valid JSON only."
        response = await self.generate(prompt, json_instruction.strip(), json_mode=True)
        return parse_json_object(response.text)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _generate_openai(
        self,
        prompt: str,
        system_instruction: str | None,
        temperature: float,
        json_mode: bool,
    ) -> LLMResponse:
        """Generate using an OpenAI-compatible chat completions endpoint."""
        if not self.api_key:
            raise LLMError("No API key configured for OpenAI")

        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})

        body: dict[str, Any] = {
            "model": self.model,
            "temperature": temperature,
            "messages": messages,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        data = await self._post(
            f"{self.base_url}/chat/completions",
            body,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

        try:
            choices = data.get("choices") or []
            text = ""
            if choices:
                text = (choices[0].get("message") or {}).get("content") or ""
            usage = data.get("usage") or {}
            return LLMResponse(
                text=text.strip(),
                model=self.model,
                provider="openai",
                tokens_used=usage.get("total_tokens"),
            )
        except (AttributeError, IndexError, TypeError) as e:
            raise _malformed(self.provider, e) from e

    async def _generate_gemini(
        self,
        prompt: str,
        system_instruction: str | None,
        temperature: float,
        json_mode: bool,
    ) -> LLMResponse:
        """Generate using the Gemini REST API."""
        if not self.api_key:
            raise LLMError("No API key configured for Gemini")

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature},
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if json_mode:
            body["generationConfig"]["responseMimeType"] = "application/json"

        data = await self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            body,
            headers={"x-goog-api-key": self.api_key},
        )

        # Extract text from response
        try:
            text = ""
            candidates = data.get("candidates", [])
            if candidates:
                content = candidates[0].get("content", {})
                parts = content.get("parts", [])
                if parts:
                    text = parts[0].get("text", "")
            usage = data.get("usageMetadata", {})
            return LLMResponse(
                text=text.strip(),
                model=self.model,
                provider="gemini",
                tokens_used=usage.get("totalTokenCount"),
            )
        except (AttributeError, IndexError, TypeError) as e:
            raise _malformed(self.provider, e) from e

    async def _generate_ollama(
        self,
        prompt: str,
        system_instruction: str | None,
        temperature: float,
        json_mode: bool,
    ) -> LLMResponse:
        """Generate using local Ollama."""
        body: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if system_instruction:
            body["system"] = system_instruction
        if json_mode:
            body["format"] = "json"

        data = await self._post(f"{self.base_url}/api/generate", body)

        return LLMResponse(
            text=str(data.get("response", "")).strip(),
            model=self.model,
            provider="ollama",
            tokens_used=data.get("eval_count"),
        )

    async def _post(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.post(url, json=body, headers=headers)
        except httpx.TransportError as e:
            raise LLMError(
                f"{self.provider} unreachable: {e}",
                {"provider": self.provider},
            ) from e

        if response.status_code == 429:
            raise LLMError(f"{self.provider} rate limited", {"code": "RATE_LIMITED"})

        if response.status_code != 200:
            logger.error(
                "%s error: %s %s", self.provider, response.status_code, response.text[:200]
            )
            raise LLMError(
                f"{self.provider} API error: {response.status_code}",
                {"provider": self.provider, "status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"{self.provider} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise LLMError(f"{self.provider} returned an unexpected payload")
        return data


def _malformed(provider: str, error: Exception) -> LLMError:
    logger.warning("%s response has an unexpected shape: %s", provider, error)
    return LLMError(f"{provider} returned a malformed response", {"provider": provider})


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse a JSON object from model output.

    Tolerates prose or code fences around the object.

    Raises:
        LLMError: No JSON object could be parsed
    """
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise LLMError("Model response is not JSON", {"text": text[:200]}) from None
        try:
            result = json.loads(text[start:end])
        except json.JSONDecodeError as e:
            raise LLMError("Model response is not JSON", {"text": text[:200]}) from e

    if not isinstance(result, dict):
        raise LLMError("Model response is not a JSON object", {"text": text[:200]})
    return result


def create_llm_service(settings: Settings) -> LLMService | None:
    """
    Build the configured LLM service.

    Returns:
        LLMService, or None when no provider is configured or its key is missing
    """
    provider = settings.llm_provider.lower()
    if provider == "none":
        return None

    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("LLM provider 'openai' configured without OPENAI_API_KEY; disabled")
            return None
        return LLMService(
            "openai",
            settings.chat_model,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout,
        )

    if provider == "gemini":
        if not settings.gemini_api_key:
            logger.warning("LLM provider 'gemini' configured without GEMINI_API_KEY; disabled")
            return None
        return LLMService(
            "gemini",
            settings.gemini_model,
            api_key=settings.gemini_api_key,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout,
        )

    if provider == "ollama":
        return LLMService(
            "ollama",
            settings.ollama_model,
            base_url=settings.ollama_url,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout,
        )

    logger.warning("Unknown LLM provider '%s'; LLM features disabled", provider)
    return None
