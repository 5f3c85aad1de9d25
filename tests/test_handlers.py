"""Tests for the Telegram handlers and the per-message pipeline."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.constants import ChatAction

from src.bot.handlers import (
    ERROR_REPLY,
    TEXT_ONLY_NOTICE,
    handle_clear,
    handle_language,
    handle_message,
    handle_non_text,
    handle_start,
    handle_status,
    split_message,
)
from src.bot.session import get_session, get_store
from src.llm.errors import BadRequestError, ExhaustedError, TransientError
from src.llm.ledger import KeyLedger

CHAT_ID = 12345

# -- Helpers -----------------------------------------------------------------


def _update(text: str | None = "hello", first_name: str | None = "Amina") -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = CHAT_ID
    update.effective_user.first_name = first_name
    update.effective_message.text = text
    update.effective_message.message_id = 777
    update.message.reply_text = AsyncMock()
    return update


def _context(args: list[str] | None = None) -> MagicMock:
    context = MagicMock()
    context.args = args or []
    context.bot.send_message = AsyncMock()
    context.bot.send_chat_action = AsyncMock()
    return context


def _sent_texts(context: MagicMock) -> list[str]:
    return [c.kwargs["text"] for c in context.bot.send_message.call_args_list]


# -- Message pipeline ---------------------------------------------------------


async def test_message_round_trip() -> None:
    update = _update("What is couscous?")
    context = _context()

    with patch("src.bot.handlers.complete_text", AsyncMock(return_value="A dish!")) as mock:
        await handle_message(update, context)

    prompt = mock.await_args.args[0]
    assert "MESSAGE: What is couscous?" in prompt
    assert "USER: Amina" in prompt

    context.bot.send_chat_action.assert_awaited_once_with(
        chat_id=CHAT_ID, action=ChatAction.TYPING
    )
    send_kwargs = context.bot.send_message.await_args.kwargs
    assert send_kwargs["chat_id"] == CHAT_ID
    assert send_kwargs["text"] == "A dish!"
    assert send_kwargs["reply_parameters"].message_id == 777

    session = get_session(CHAT_ID)
    assert session.get_context(6) == "user: What is couscous?\nassistant: A dish!"
    assert session.language == "en"


async def test_missing_first_name_defaults_to_friend() -> None:
    update = _update("hi", first_name=None)
    context = _context()

    with patch("src.bot.handlers.complete_text", AsyncMock(return_value="ok")) as mock:
        await handle_message(update, context)

    assert "USER: Friend" in mock.await_args.args[0]


async def test_language_pinned_across_messages() -> None:
    context = _context()
    with patch("src.bot.handlers.complete_text", AsyncMock(return_value="ok")) as mock:
        await handle_message(_update("واش راك"), context)
        await handle_message(_update("and now in English"), context)

    assert "Respond in Algerian Darija" in mock.await_args.args[0]


async def test_typing_failure_does_not_block_reply() -> None:
    context = _context()
    context.bot.send_chat_action.side_effect = RuntimeError("telegram down")

    with patch("src.bot.handlers.complete_text", AsyncMock(return_value="still here")):
        await handle_message(_update(), context)

    assert _sent_texts(context) == ["still here"]


@pytest.mark.parametrize(
    "error",
    [
        ExhaustedError("no keys", last_error=TransientError("HTTP 503")),
        BadRequestError("HTTP 400"),
        RuntimeError("bug"),
    ],
)
async def test_failures_send_apology(error: Exception) -> None:
    context = _context()

    with patch("src.bot.handlers.complete_text", AsyncMock(side_effect=error)):
        await handle_message(_update(), context)

    assert _sent_texts(context) == [ERROR_REPLY]
    # The user turn is kept, no assistant turn is recorded
    assert [m.role for m in get_session(CHAT_ID).messages] == ["user"]


async def test_apology_send_failure_is_swallowed() -> None:
    context = _context()
    context.bot.send_message.side_effect = RuntimeError("blocked by user")

    with patch("src.bot.handlers.complete_text", AsyncMock(side_effect=RuntimeError("x"))):
        await handle_message(_update(), context)

    assert context.bot.send_message.await_count == 1


async def test_long_reply_is_split() -> None:
    context = _context()
    long_reply = "a" * 5000

    with patch("src.bot.handlers.complete_text", AsyncMock(return_value=long_reply)):
        await handle_message(_update(), context)

    calls = context.bot.send_message.call_args_list
    assert [len(c.kwargs["text"]) for c in calls] == [4096, 904]
    assert calls[0].kwargs["reply_parameters"] is not None
    assert calls[1].kwargs["reply_parameters"] is None


async def test_non_text_gets_notice() -> None:
    context = _context()
    await handle_non_text(_update(text=None), context)
    assert _sent_texts(context) == [TEXT_ONLY_NOTICE]


# -- Commands -----------------------------------------------------------------


async def test_start_creates_session_and_greets() -> None:
    update = _update()
    await handle_start(update, _context())

    assert get_store().get(CHAT_ID) is not None
    greeting = update.message.reply_text.await_args.args[0]
    assert "Hello Amina" in greeting
    assert "ChatWME" in greeting


async def test_clear_reports_count() -> None:
    session = get_session(CHAT_ID)
    session.add("user", "one")
    session.add("assistant", "two")
    update = _update()

    await handle_clear(update, _context())

    update.message.reply_text.assert_awaited_once_with("Cleared 2 messages. Starting fresh.")
    assert session.messages == []


async def test_language_override() -> None:
    update = _update()
    await handle_language(update, _context(["FR"]))

    session = get_session(CHAT_ID)
    assert session.language == "fr"
    assert session.language_preference == "override"
    assert "French" in update.message.reply_text.await_args.args[0]


async def test_language_unknown_option() -> None:
    update = _update()
    await handle_language(update, _context(["xx"]))

    assert "Unknown language 'xx'" in update.message.reply_text.await_args.args[0]
    assert get_session(CHAT_ID).language == "auto"


async def test_language_without_args_shows_current() -> None:
    update = _update()
    await handle_language(update, _context())
    assert "Language: auto (auto)" in update.message.reply_text.await_args.args[0]


async def test_status_shows_key_pool(clock) -> None:
    ledger = KeyLedger(["a", "b"], clock=clock)
    ledger.mark_cooling(0, 60)
    fake_client = MagicMock(ledger=ledger)
    update = _update()

    with patch("src.bot.handlers.get_client", return_value=fake_client):
        await handle_status(update, _context())

    text = update.message.reply_text.await_args.args[0]
    assert "API keys available: 1/2" in text
    assert "Active sessions: 1" in text


# -- split_message -----------------------------------------------------------


def test_split_message_short_text_untouched() -> None:
    assert split_message("hello") == ["hello"]


def test_split_message_prefers_line_breaks() -> None:
    text = "a" * 6 + "\n" + "b" * 6
    assert split_message(text, limit=10) == ["aaaaaa", "bbbbbb"]


def test_split_message_hard_cut_without_newline() -> None:
    assert split_message("abcdefghij", limit=4) == ["abcd", "efgh", "ij"]
