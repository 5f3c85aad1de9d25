"""Telegram command and message handlers."""

import contextlib
import logging

from telegram import ReplyParameters, Update
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from src.bot.session import AUTO, LANGUAGES, get_session, get_store
from src.config import settings
from src.llm.client import complete_text, get_client
from src.llm.errors import BadRequestError, ExhaustedError
from src.llm.prompt import LANGUAGE_NAMES, build_prompt

logger = logging.getLogger(__name__)

# Telegram rejects messages longer than this
TELEGRAM_MAX_LENGTH = 4096

ERROR_REPLY = (
    "Sorry, I encountered an error. Please try again. / "
    "عذراً، حدث خطأ. حاول مرة أخرى."
)
TEXT_ONLY_NOTICE = (
    "I only process text messages for now. Please send me a text message! / "
    "أعالج الرسائل النصية فقط حالياً. أرسل لي رسالة نصية!"
)


def _display_name(update: Update) -> str:
    user = update.effective_user
    if user is None or not user.first_name:
        return "Friend"
    return user.first_name


def split_message(text: str, limit: int = TELEGRAM_MAX_LENGTH) -> list[str]:
    """Split text into chunks of at most ``limit`` chars, preferring line breaks."""
    chunks: list[str] = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text:
        chunks.append(text)
    return chunks


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start: create the session and greet the user."""
    get_session(update.effective_chat.id)
    name = _display_name(update)
    bot_name = settings.bot_name
    await update.message.reply_text(
        f"🤖 مرحباً {name}، أنا {bot_name}!\n\n"
        "مساعد ذكي يمكنني المحادثة معك بالعربية والإنجليزية 💬\n\n"
        "---\n\n"
        f"🤖 Hello {name}, I'm {bot_name}!\n\n"
        "An AI assistant that can chat with you in Arabic and English 💬\n\n"
        "💡 أرسل لي أي رسالة وسأجيبك! / Send me any message and I'll respond!"
    )


async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help: list commands."""
    lines = [
        f"🆘 {settings.bot_name} Help",
        "",
        "/start - Start conversation",
        "/help - Show this help",
        "/clear - Forget our conversation",
        "/language [ar|dz|fr|en|auto] - Choose my reply language",
        "/status - Show session info",
        "",
        "Write in any language and I'll answer in yours.",
    ]
    await update.message.reply_text("\n".join(lines))


async def handle_clear(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /clear: reset conversation history."""
    session = get_session(update.effective_chat.id)
    count = session.clear()
    await update.message.reply_text(f"Cleared {count} messages. Starting fresh.")


async def handle_language(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /language: view or override the reply language."""
    session = get_session(update.effective_chat.id)
    options = ", ".join((*LANGUAGES, AUTO))

    if not context.args:
        await update.message.reply_text(
            f"Language: {session.language} ({session.language_preference})\n"
            f"Options: {options}"
        )
        return

    choice = context.args[0].lower()
    try:
        session.set_language(choice)
    except ValueError:
        await update.message.reply_text(f"Unknown language '{choice}'. Valid options: {options}")
        return

    if choice == AUTO:
        await update.message.reply_text("Language detection re-enabled.")
    else:
        await update.message.reply_text(f"I'll reply in {LANGUAGE_NAMES[choice]}.")


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /status: show session and key pool info."""
    session = get_session(update.effective_chat.id)
    ledger = get_client().ledger
    lines = [
        f"{settings.bot_name} Status",
        f"Messages in context: {len(session.messages)}/{session.max_history}",
        f"Messages total: {session.message_count}",
        f"Language: {session.language} ({session.language_preference})",
        f"API keys available: {ledger.usable_count()}/{len(ledger)}",
        f"Active sessions: {len(get_store())}",
        "Status: online",
    ]
    await update.message.reply_text("\n".join(lines))


async def _send_reply(
    context: ContextTypes.DEFAULT_TYPE, chat_id: int, text: str, reply_to: int
) -> None:
    """Send ``text`` in one or more messages, threading the first to ``reply_to``."""
    for i, chunk in enumerate(split_message(text)):
        reply_parameters = None
        if i == 0:
            reply_parameters = ReplyParameters(
                message_id=reply_to, allow_sending_without_reply=True
            )
        await context.bot.send_message(
            chat_id=chat_id, text=chunk, reply_parameters=reply_parameters
        )


async def _send_apology(context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> None:
    try:
        await context.bot.send_message(chat_id=chat_id, text=ERROR_REPLY)
    except Exception:
        logger.exception("Failed to send error reply to %s", chat_id)


async def _process_message(
    update: Update, context: ContextTypes.DEFAULT_TYPE, user_message: str
) -> None:
    """Shared pipeline: session, prompt, Gemini, reply."""
    chat_id = update.effective_chat.id
    message_id = update.effective_message.message_id

    try:
        session = get_session(chat_id)
        session.add("user", user_message)
        session.detect_language(user_message)
        prompt = build_prompt(user_message, _display_name(update), session)

        with contextlib.suppress(Exception):
            await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)

        reply = await complete_text(prompt)
        session.add("assistant", reply)
        await _send_reply(context, chat_id, reply, message_id)

    except ExhaustedError as exc:
        logger.error("No Gemini reply for chat %s: %s", chat_id, exc.last_error or exc)
        await _send_apology(context, chat_id)
    except BadRequestError as exc:
        logger.error("Gemini rejected prompt for chat %s: %s", chat_id, exc)
        await _send_apology(context, chat_id)
    except Exception:
        logger.exception("Error handling message from %s", chat_id)
        await _send_apology(context, chat_id)


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle incoming text messages."""
    user_message = update.effective_message.text
    logger.info("Message from %s: %s", update.effective_chat.id, user_message[:80])

    await _process_message(update, context, user_message)


async def handle_non_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Reply to photos, stickers, voice notes etc. with a text-only notice."""
    chat_id = update.effective_chat.id
    logger.info("Non-text message from %s", chat_id)
    try:
        await context.bot.send_message(chat_id=chat_id, text=TEXT_ONLY_NOTICE)
    except Exception:
        logger.exception("Failed to send text-only notice to %s", chat_id)
