"""Gemini client with API-key rotation, cool-downs and retries."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.llm import gemini
from src.llm.errors import (
    BadRequestError,
    ExhaustedError,
    RateLimitedError,
    TransientError,
    UpstreamError,
)
from src.llm.ledger import KeyLedger
from src.llm.models import MODEL_MAP, friendly, resolve

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    # (prompt, api_key, model) -> reply text
    Transport = Callable[[str, str, str], Awaitable[str]]

logger = logging.getLogger(__name__)

_client: RotatingClient | None = None


class RotatingClient:
    """Turns one prompt into one reply, spreading calls over a KeyLedger.

    Each loop iteration either skips a cooling key (rotating past it) or
    makes exactly one upstream call, and the loop runs at most
    ``max_attempts`` times, so a single ``complete()`` never makes more
    than ``max_attempts`` calls and always terminates, even when every
    key is cooling.
    """

    def __init__(
        self,
        ledger: KeyLedger,
        transport: Transport,
        *,
        model: str,
        fallback_model: str | None = None,
        attempt_factor: int = 2,
        cooldown: float = 60.0,
        rate_limit_pause: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.model = model
        self.fallback_model = fallback_model
        self._transport = transport
        self._attempt_factor = attempt_factor
        self._cooldown = cooldown
        self._rate_limit_pause = rate_limit_pause
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return len(self.ledger) * self._attempt_factor

    async def complete(self, prompt: str) -> str:
        """Return the reply for ``prompt``.

        Raises:
            BadRequestError: Gemini rejected the request itself and no
                fallback model could handle it.
            ExhaustedError: Every attempt failed or every key was cooling.
        """
        model = self.model
        used_fallback = False
        last_error: UpstreamError | None = None

        for _ in range(self.max_attempts):
            index = self.ledger.cursor
            if not self.ledger.is_usable(index):
                self.ledger.rotate()
                continue

            api_key = self.ledger.current()
            try:
                return await self._transport(prompt, api_key, model)
            except RateLimitedError as exc:
                last_error = exc
                logger.warning("Rate limited on %s: %s", self.ledger.label(index), exc)
                self.ledger.mark_cooling(index, self._cooldown)
                self.ledger.rotate()
                await self._sleep(self._rate_limit_pause)
            except BadRequestError as exc:
                last_error = exc
                if self.fallback_model and not used_fallback:
                    logger.warning(
                        "Bad request on %s, retrying with %s: %s",
                        friendly(model),
                        friendly(self.fallback_model),
                        exc,
                    )
                    model = self.fallback_model
                    used_fallback = True
                    continue
                logger.error("Bad request on %s: %s", friendly(model), exc)
                raise
            except TransientError as exc:
                last_error = exc
                logger.warning("Transient error on %s: %s", self.ledger.label(index), exc)
                self.ledger.rotate()

        if last_error is None:
            message = f"All {len(self.ledger)} API keys are cooling down"
        else:
            message = f"No reply after {self.max_attempts} attempts: {last_error}"
        raise ExhaustedError(message, last_error=last_error)


def _build_client() -> RotatingClient:
    """Create the process-wide client from settings."""
    keys = settings.get_gemini_keys()
    model = resolve(settings.gemini_model) or MODEL_MAP["flash"]
    fallback = resolve(settings.gemini_fallback_model)
    config = gemini.GenerationConfig(
        temperature=settings.gemini_temperature,
        max_output_tokens=settings.gemini_max_output_tokens,
        top_k=settings.gemini_top_k,
        top_p=settings.gemini_top_p,
    )

    async def _transport(prompt: str, api_key: str, model_id: str) -> str:
        return await gemini.generate_content(
            prompt,
            api_key=api_key,
            model=model_id,
            base_url=settings.gemini_api_base,
            config=config,
            timeout=settings.gemini_timeout_seconds,
        )

    logger.info(
        "Gemini client: model=%s, fallback=%s, keys=%d",
        friendly(model),
        friendly(fallback) if fallback else "none",
        len(keys),
    )
    return RotatingClient(
        KeyLedger(keys),
        _transport,
        model=model,
        fallback_model=fallback,
        attempt_factor=settings.key_attempt_factor,
        cooldown=settings.key_cooldown_seconds,
        rate_limit_pause=settings.rate_limit_pause_seconds,
    )


def get_client() -> RotatingClient:
    """Lazily initialize the shared Gemini client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = _build_client()
    return _client


async def complete_text(prompt: str) -> str:
    """Single-shot reply through the shared rotating client."""
    return await get_client().complete(prompt)
