from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Protocol

import httpx

from widgetforge.errors import EmptyResponse, ServiceError
from widgetforge.llm_prompts import CONTEXT_HEADER, SYSTEM_MESSAGE, build_messages
from widgetforge.token_budget import fit_context

log = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4-turbo").strip()
OPENAI_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3").strip()
IMAGE_SIZE = os.getenv("IMAGE_SIZE", "1024x1024").strip()
RESPONSE_FORMAT = {"type": "json_object"}

try:
    TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
except ValueError:
    TEMPERATURE = 0.7
try:
    LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4000"))
except ValueError:
    LLM_MAX_TOKENS = 4000
try:
    LLM_TIMEOUT_SECS = float(os.getenv("LLM_TIMEOUT_SECS", "75"))
except ValueError:
    LLM_TIMEOUT_SECS = 75.0


class GenerationService(Protocol):
    """What the pipeline needs from a model provider. Payloads use the OpenAI shapes."""

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        response_format: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]: ...

    async def generate_image(self, prompt: str, *, model: str, size: str, n: int = 1) -> Dict[str, Any]: ...


class OpenAIService:
    """OpenAI REST client for chat completions and image generation.

    Owns one httpx.AsyncClient; close it with ``aclose()`` or ``async with``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = (api_key if api_key is not None else OPENAI_API_KEY).strip()
        self.base_url = (base_url or OPENAI_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout or LLM_TIMEOUT_SECS,
            transport=transport,
        )

    @property
    def has_token(self) -> bool:
        return bool(self.api_key)

    async def __aenter__(self) -> "OpenAIService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: Dict[str, Any], label: str) -> Dict[str, Any]:
        try:
            resp = await self._client.post(path, json=body)
        except httpx.HTTPError as e:
            log.warning("openai.%s request error: %r", label, e)
            raise ServiceError(f"{label} request failed: {e}") from e

        if resp.status_code != 200:
            msg = resp.text[:400]
            log.warning("openai.%s HTTP %s: %s", label, resp.status_code, msg)
            raise ServiceError(
                f"{label} HTTP {resp.status_code}",
                status_code=resp.status_code,
                context={"body": msg},
            )
        try:
            data = resp.json()
        except ValueError as e:
            log.warning("openai.%s non-JSON HTTP body", label)
            raise ServiceError(f"{label} returned a non-JSON body", status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise ServiceError(f"{label} returned an unexpected payload", status_code=resp.status_code)
        return data

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        response_format: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            body["response_format"] = response_format
        return await self._post("/chat/completions", body, "completion")

    async def generate_image(self, prompt: str, *, model: str, size: str, n: int = 1) -> Dict[str, Any]:
        body = {"model": model, "prompt": prompt, "n": n, "size": size}
        return await self._post("/images/generations", body, "image")


def status(service: Optional[Any] = None) -> Dict[str, Any]:
    has_token = bool(getattr(service, "has_token", bool(OPENAI_API_KEY)))
    return {
        "provider": "openai" if has_token else None,
        "model": OPENAI_MODEL,
        "image_model": OPENAI_IMAGE_MODEL,
        "has_token": has_token,
    }


def first_choice_text(payload: Dict[str, Any]) -> Optional[str]:
    """Text of the first choice that carries any, else None."""
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list):
        return None
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content.strip():
            return content
    return None


async def request_completion(service: GenerationService, prompt: str, additional_context: str = "") -> str:
    """Send system instruction + prompt and return the raw completion text."""
    system_len = len(SYSTEM_MESSAGE) + len(CONTEXT_HEADER)
    context = fit_context(prompt, additional_context, system_len)
    messages = build_messages(prompt, context)
    log.info("llm.request prompt_len=%d context_len=%d model=%s", len(prompt), len(context), OPENAI_MODEL)
    log.debug("llm.request prompt=%r", prompt)

    payload = await service.complete(
        messages,
        model=OPENAI_MODEL,
        temperature=TEMPERATURE,
        max_tokens=LLM_MAX_TOKENS,
        response_format=RESPONSE_FORMAT,
    )
    raw = first_choice_text(payload)
    if not raw:
        n_choices = len(payload.get("choices") or []) if isinstance(payload, dict) else 0
        log.error("llm.response empty choices=%d", n_choices)
        raise EmptyResponse("No response text from completion service", context={"choices": n_choices})
    log.debug("llm.response raw_len=%d raw=%r", len(raw), raw)
    return raw
