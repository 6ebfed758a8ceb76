# ─────────────────────────────────────────────────────────────────────────────
# Upstream Client — one chat-completion call over a shared httpx.AsyncClient
# ─────────────────────────────────────────────────────────────────────────────
# No retry and no overall deadline here: the orchestrator owns both, so a
# single attempt is exactly one POST.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog
from pydantic import SecretStr

from copysmith.config import Settings
from copysmith.exceptions import (
    ConfigurationError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = "You are an expert e-commerce copywriter. Return valid JSON only."
TEMPERATURE = 0.7
MAX_TOKENS = 1500


def message_text(payload: Any) -> str:
    """Pull the model text out of a chat-completion payload.

    Falls back from ``choices[0].message.content`` to ``choices[0].text``,
    then to the JSON dump of whatever came back.
    """
    if isinstance(payload, dict):
        choices = payload.get("choices")
        first = choices[0] if isinstance(choices, list) and choices else None
        if not isinstance(first, dict):
            return json.dumps(payload)
        message = first.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if content:
            return str(content)
        if first.get("text"):
            return str(first["text"])
    return json.dumps(payload)


class ChatCompletionClient:
    """OpenAI-compatible ``/chat/completions`` client."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str,
        api_key: SecretStr,
        model: str,
        timeout_s: float = 25.0,
    ) -> None:
        self._http = http
        self._timeout_s = timeout_s
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._api_key = api_key
        self._model = model

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> ChatCompletionClient:
        return cls(
            http,
            base_url=settings.deepseek_base_url,
            api_key=settings.deepseek_api_key,
            model=settings.deepseek_model,
            timeout_s=settings.upstream_timeout_seconds,
        )

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }

    async def complete(self, prompt: str) -> str:
        """POST one prompt and return the raw model text.

        Raises:
            ConfigurationError: No API key configured.
            UpstreamHTTPError: Non-2xx response (status and body kept).
            UpstreamTimeoutError: The HTTP client's own timeout fired.
            UpstreamError: Transport failure (connect, read, protocol).
        """
        api_key = self._api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError("DEEPSEEK_API_KEY")

        try:
            response = await self._http.post(
                self._url,
                json=self._body(prompt),
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(self._timeout_s) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream transport error: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise UpstreamHTTPError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError:
            logger.debug("upstream_non_json_body", chars=len(response.text))
            return response.text

        text = message_text(payload)
        logger.debug("upstream_response", model=self._model, chars=len(text))
        return text
