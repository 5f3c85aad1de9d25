"""In-memory conversation sessions with a bounded history and idle eviction."""

from __future__ import annotations

import logging
import re
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

LANGUAGES = ("ar", "dz", "fr", "en")
AUTO = "auto"

_ARABIC = re.compile(r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]")
_LATIN_ACCENTED = re.compile(r"[àâäçéèêëîïôöùûüÿœæÀÂÄÇÉÈÊËÎÏÔÖÙÛÜŸŒÆ]")
_LETTER = re.compile(r"[^\W\d_]")
_WORD_ANY = re.compile(r"\w+")

# Tokens common in Algerian Darija but rare in Modern Standard Arabic
DARIJA_KEYWORDS = frozenset({
    "واش",
    "كيفاش",
    "بزاف",
    "شكون",
    "علاش",
    "وين",
    "راني",
    "راك",
    "نتا",
    "خويا",
    "درك",
    "ياخو",
    "مليح",
    "بصح",
    "بلاك",
    "قاع",
})

_WORD = re.compile(r"\w{5,}")
MAX_INTERESTS = 20


def classify_language(text: str) -> str:
    """Classify text by script.

    Arabic script → ``ar`` (``dz`` when a Darija keyword appears), Latin
    accented letters → ``fr``, any other letters → ``en``. Text without
    letters (emoji, digits, punctuation) → ``auto``.
    """
    if _ARABIC.search(text):
        if DARIJA_KEYWORDS.intersection(_WORD_ANY.findall(text)):
            return "dz"
        return "ar"
    if _LATIN_ACCENTED.search(text):
        return "fr"
    if _LETTER.search(text):
        return "en"
    return AUTO


@dataclass
class Message:
    """A single conversation turn."""

    role: str  # "user" or "assistant"
    content: str
    timestamp: float


@dataclass
class Session:
    """Conversation state for a single chat."""

    id: str
    max_history: int = field(default_factory=lambda: settings.session_history_size)
    clock: Callable[[], float] = field(default=time.time, repr=False)
    messages: list[Message] = field(default_factory=list)
    message_count: int = 0
    last_activity: float = 0.0
    language: str = AUTO
    language_overridden: bool = False
    interests: Counter[str] = field(default_factory=Counter)

    def __post_init__(self) -> None:
        if self.max_history < 1:
            raise ValueError(f"max_history must be at least 1, got {self.max_history}")
        if not self.last_activity:
            self.last_activity = self.clock()

    def add(self, role: str, content: str) -> None:
        """Append a message and drop the oldest ones beyond ``max_history``."""
        now = self.clock()
        self.messages.append(Message(role=role, content=content, timestamp=now))
        if len(self.messages) > self.max_history:
            self.messages = self.messages[-self.max_history :]
        self.message_count += 1
        self.last_activity = now
        if role == "user":
            self._track_interests(content)

    def get_context(self, window_size: int | None = None) -> str:
        """Render the last ``window_size`` messages as ``role: text`` lines."""
        if window_size is None:
            window_size = settings.context_window_size
        if window_size <= 0 or not self.messages:
            return ""
        recent = self.messages[-window_size:]
        return "\n".join(f"{m.role}: {m.content}" for m in recent)

    def detect_language(self, text: str) -> str:
        """Return the chat's response language, pinning the first detection.

        Once a language has been detected (or set with ``set_language``)
        later messages in another script do not change it.
        """
        if self.language != AUTO:
            return self.language
        detected = classify_language(text)
        if detected != AUTO:
            self.language = detected
            logger.info("Session %s: language pinned to %s", self.id, detected)
        return detected

    def set_language(self, language: str) -> None:
        """Explicitly choose the response language; ``auto`` re-enables detection."""
        if language != AUTO and language not in LANGUAGES:
            raise ValueError(f"Unknown language: {language}")
        self.language = language
        self.language_overridden = language != AUTO

    @property
    def language_preference(self) -> str:
        """One of ``auto``, ``detected`` or ``override``."""
        if self.language_overridden:
            return "override"
        return AUTO if self.language == AUTO else "detected"

    def top_interests(self, limit: int = 5) -> list[str]:
        return [word for word, _ in self.interests.most_common(limit)]

    def clear(self) -> int:
        """Clear history and interests. Returns the count of cleared messages."""
        count = len(self.messages)
        self.messages.clear()
        self.interests.clear()
        return count

    def _track_interests(self, content: str) -> None:
        for word in _WORD.findall(content.lower()):
            if word.isdigit():
                continue
            if word in self.interests or len(self.interests) < MAX_INTERESTS:
                self.interests[word] += 1


class SessionStore:
    """Sessions keyed by chat ID."""

    def __init__(
        self,
        max_history: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._max_history = max_history
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def size(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str | int) -> Session | None:
        return self._sessions.get(str(session_id))

    def get_or_create(self, session_id: str | int) -> Session:
        """Get or create a session for a chat."""
        key = str(session_id)
        session = self._sessions.get(key)
        if session is None:
            session = Session(
                id=key,
                max_history=self._max_history or settings.session_history_size,
                clock=self._clock,
            )
            self._sessions[key] = session
        return session

    def evict_idle(self, max_idle: float) -> int:
        """Drop sessions idle for longer than ``max_idle`` seconds. Returns the count."""
        now = self._clock()
        stale = [
            key
            for key, session in list(self._sessions.items())
            if now - session.last_activity > max_idle
        ]
        for key in stale:
            self._sessions.pop(key, None)
        return len(stale)


_store: SessionStore | None = None


def get_store() -> SessionStore:
    """Return the process-wide session store."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = SessionStore()
    return _store


def get_session(session_id: str | int) -> Session:
    """Get or create a session for a chat."""
    return get_store().get_or_create(session_id)
