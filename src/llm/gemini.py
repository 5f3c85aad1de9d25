"""Single generateContent call against the Gemini REST API using httpx."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from src.llm.errors import BadRequestError, RateLimitedError, TransientError, UpstreamError

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters sent with every request."""

    temperature: float = 0.7
    max_output_tokens: int = 1024
    top_k: int = 40
    top_p: float = 0.95
    safety_threshold: str = "BLOCK_MEDIUM_AND_ABOVE"

    def to_payload(self) -> dict[str, Any]:
        return {
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
                "topK": self.top_k,
                "topP": self.top_p,
            },
            "safetySettings": [
                {"category": category, "threshold": self.safety_threshold}
                for category in SAFETY_CATEGORIES
            ],
        }


def classify_status(status: int, detail: str) -> UpstreamError:
    """Map a non-2xx status code onto the error taxonomy."""
    message = f"HTTP {status}: {detail}"
    if status in (429, 403):
        return RateLimitedError(message, status=status)
    if status == 400:
        return BadRequestError(message, status=status)
    return TransientError(message, status=status)


def extract_text(data: dict[str, Any]) -> str:
    """Pull the first candidate's text out of a generateContent response."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = ""
    if not isinstance(text, str) or not text.strip():
        raise TransientError("No valid response from Gemini")
    return text


def _error_detail(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:200]


async def generate_content(
    prompt: str,
    *,
    api_key: str,
    model: str,
    base_url: str,
    config: GenerationConfig,
    timeout: float = 30.0,
) -> str:
    """POST the prompt to ``{base_url}/models/{model}:generateContent``.

    Returns the reply text. Raises ``RateLimitedError``,
    ``BadRequestError`` or ``TransientError``; never a raw httpx error.
    """
    url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
    payload = {"contents": [{"parts": [{"text": prompt}]}], **config.to_payload()}

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, params={"key": api_key}, json=payload)
            resp.raise_for_status()
            data = resp.json()
    except httpx.TimeoutException as exc:
        raise TransientError(f"Timeout after {timeout:.0f}s") from exc
    except httpx.HTTPStatusError as exc:
        raise classify_status(exc.response.status_code, _error_detail(exc.response)) from exc
    except httpx.HTTPError as exc:
        raise TransientError(f"Network error: {exc}") from exc
    except ValueError as exc:
        raise TransientError("Gemini returned invalid JSON") from exc

    return extract_text(data)
