"""Key rotation ledger: ordered API keys, a cursor and per-key cool-downs.

The ledger is shared by every in-flight request. None of its methods
await, so under asyncio each call is atomic with respect to other
coroutines. Interleaved rotations from concurrent requests are a
best-effort hint; callers that need to refer to a specific key across
an ``await`` should capture ``cursor`` first and pass the index back.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)


def mask_key(raw_key: str, index: int) -> str:
    """Loggable label for a key, e.g. ``key2-***abcd``."""
    tail = raw_key[-4:] if raw_key else "xxxx"
    return f"key{index + 1}-***{tail}"


class KeyLedger:
    """Round-robin key pool with lazily expiring cool-downs."""

    def __init__(
        self,
        keys: Sequence[str],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not keys:
            raise ValueError("KeyLedger needs at least one key")
        self._keys = tuple(keys)
        self._clock = clock
        self._cursor = 0
        self._cooling_until: dict[int, float] = {}

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def cursor(self) -> int:
        return self._cursor

    def current(self) -> str:
        return self._keys[self._cursor]

    def label(self, index: int) -> str:
        return mask_key(self._keys[index], index)

    def is_usable(self, index: int) -> bool:
        """True unless the key is cooling down right now."""
        until = self._cooling_until.get(index)
        if until is None:
            return True
        if self._clock() >= until:
            del self._cooling_until[index]
            return True
        return False

    def rotate(self) -> int:
        """Advance the cursor by one, wrapping around. Returns the new cursor."""
        self._cursor = (self._cursor + 1) % len(self._keys)
        logger.debug("Rotated to %s", self.label(self._cursor))
        return self._cursor

    def mark_cooling(self, index: int, duration: float) -> None:
        """Make key ``index`` unusable for ``duration`` seconds."""
        self._cooling_until[index] = self._clock() + duration
        logger.warning("%s cooling down for %.0fs", self.label(index), duration)

    def usable_count(self) -> int:
        return sum(1 for i in range(len(self._keys)) if self.is_usable(i))
