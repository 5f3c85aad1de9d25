"""Gemini model name resolution."""

import logging

logger = logging.getLogger(__name__)

MODEL_MAP: dict[str, str] = {
    "flash": "gemini-1.5-flash",
    "flash-8b": "gemini-1.5-flash-8b",
    "pro": "gemini-1.5-pro",
}

# Reverse lookup: full model string → friendly name
FRIENDLY_NAMES: dict[str, str] = {v: k for k, v in MODEL_MAP.items()}


def resolve(name_or_id: str) -> str | None:
    """Resolve a friendly name or raw model ID. Returns None for blank input.

    Unknown names are passed through unchanged so newer Gemini models can
    be configured without a code change.
    """
    name = name_or_id.strip()
    if not name:
        return None
    return MODEL_MAP.get(name.lower(), name)


def friendly(model_id: str) -> str:
    """Return the friendly name for a model ID, or the ID itself."""
    return FRIENDLY_NAMES.get(model_id, model_id)
