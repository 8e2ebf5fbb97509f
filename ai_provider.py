import logging
from typing import Optional

import requests

from errors import ProviderError

logger = logging.getLogger(__name__)

UNDERWRITER_SYSTEM_PROMPT = "You are an expert loan underwriter. Always respond with valid JSON only."


class ChatCompletionsProvider:
    """
    Client for an OpenAI-compatible chat completions endpoint.
    One request per call; no retries.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str],
        model: str,
        temperature: float = 0.3,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.session = session or requests.Session()

    def complete(self, prompt: str, system_prompt: str = UNDERWRITER_SYSTEM_PROMPT) -> str:
        """Return the first choice's message text ("" if the provider sent none)."""
        if not self.api_key:
            raise ProviderError("AI provider API key is not configured", code="not_configured")

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("AI provider request failed: %s", e)
            raise ProviderError("AI assessment failed: provider unreachable", code="unavailable") from e

        if not response.ok:
            logger.error("AI provider returned %s: %s", response.status_code, response.text[:500])
            if response.status_code == 429:
                raise ProviderError(
                    "Rate limit exceeded. Please wait a moment and try again.",
                    code="rate_limited",
                    upstream_status=429,
                )
            if response.status_code in (401, 403):
                raise ProviderError(
                    "AI provider authentication failed",
                    code="auth_failed",
                    upstream_status=response.status_code,
                )
            raise ProviderError(
                f"AI assessment failed with status {response.status_code}",
                code="bad_status",
                upstream_status=response.status_code,
            )

        try:
            envelope = response.json()
        except ValueError as e:
            logger.error("AI provider sent a non-JSON envelope")
            raise ProviderError("AI assessment failed: unreadable provider response", code="bad_response") from e

        return _first_message_content(envelope)


def _first_message_content(envelope) -> str:
    if not isinstance(envelope, dict):
        return ""
    choices = envelope.get("choices") or []
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""
