"""Prompt assembly: persona, language, recent context and the new message."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from src.bot.session import Session

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"

LANGUAGE_NAMES: dict[str, str] = {
    "ar": "Arabic",
    "dz": "Algerian Darija (Arabic script)",
    "fr": "French",
    "en": "English",
    "auto": "the same language the user writes in",
}

DEFAULT_PERSONA = """\
You are {bot_name}, an AI assistant created by {creator_name}.

PERSONALITY:
- Friendly and helpful
- Culturally aware (especially Algerian context)
- Conversational and engaging

STYLE:
- Use emojis naturally
- Be concise but informative"""


def _read_config(filename: str) -> str:
    """Read a config markdown file, returning empty string if missing."""
    path = CONFIG_DIR / filename
    if path.exists():
        return path.read_text(encoding="utf-8")
    return ""


@functools.lru_cache(maxsize=1)
def persona_text() -> str:
    """Persona instructions, from config/PERSONA.md when present.

    Read once per process; later edits to the file are not picked up.
    """
    template = _read_config("PERSONA.md").strip() or DEFAULT_PERSONA
    return template.replace("{bot_name}", settings.bot_name).replace(
        "{creator_name}", settings.creator_name
    )


def build_prompt(
    message: str,
    user_name: str,
    session: Session,
    *,
    window_size: int | None = None,
) -> str:
    """Assemble the outbound prompt for one user message.

    Reads the session's pinned language and recent history but never
    mutates the session; call ``session.detect_language`` beforehand.
    """
    language = LANGUAGE_NAMES.get(session.language, LANGUAGE_NAMES["auto"])
    if window_size is None:
        window_size = settings.context_window_size
    context = session.get_context(window_size)

    sections = [persona_text(), f"LANGUAGE:\n- Respond in {language}"]
    if context:
        sections.append(f"CONTEXT:\nPrevious conversation:\n{context}")
    interests = session.top_interests()
    if interests:
        sections.append(f"The user has talked about: {', '.join(interests)}")
    sections.append(f"USER: {user_name}\nMESSAGE: {message}")
    sections.append("Respond appropriately:")
    return "\n\n".join(sections)
