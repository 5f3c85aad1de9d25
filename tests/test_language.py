"""Tests for script-based language detection and the sticky pin."""

import pytest

from src.bot.session import Session, classify_language


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Hello, how are you?", "en"),
        ("مرحبا كيف حالك", "ar"),
        ("واش راك خويا", "dz"),
        ("شكون صنعك؟", "dz"),
        ("Ça va très bien", "fr"),
        ("Je suis allé au marché", "fr"),
        ("hello مرحبا", "ar"),
        ("😀👍", "auto"),
        ("12345 !!", "auto"),
        ("", "auto"),
    ],
)
def test_classify_language(text: str, expected: str) -> None:
    assert classify_language(text) == expected


def test_arabic_takes_precedence_over_accents() -> None:
    assert classify_language("café مرحبا") == "ar"


def test_first_detection_is_pinned() -> None:
    session = Session(id="1")
    assert session.detect_language("مرحبا") == "ar"
    assert session.detect_language("Hello there") == "ar"
    assert session.detect_language("Ça va") == "ar"
    assert session.language_preference == "detected"


def test_auto_result_does_not_pin() -> None:
    session = Session(id="1")
    assert session.detect_language("👍") == "auto"
    assert session.language_preference == "auto"
    assert session.detect_language("Bonjour, ça va?") == "fr"
    assert session.detect_language("hello") == "fr"


def test_explicit_override_wins() -> None:
    session = Session(id="1")
    session.detect_language("hello")
    session.set_language("dz")

    assert session.detect_language("hello again") == "dz"
    assert session.language_preference == "override"


def test_override_auto_reenables_detection() -> None:
    session = Session(id="1")
    session.set_language("fr")
    session.set_language("auto")

    assert session.language_preference == "auto"
    assert session.detect_language("مرحبا") == "ar"


def test_unknown_override_rejected() -> None:
    session = Session(id="1")
    with pytest.raises(ValueError, match="Unknown language"):
        session.set_language("klingon")
    assert session.language == "auto"
