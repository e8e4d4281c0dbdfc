"""
Telegram Transport

Feeds every text message into the ConversationEngine and sends back the
replies it returns, as HTML with a reply keyboard.

Run with:
    ledgerbot            (console script)
    python -m ledgerbot.telegram_bot

Long polling is used unless TELEGRAM_WEBHOOK_URL is set.
"""

import logging
from typing import Optional

import structlog
from telegram import KeyboardButton, ReplyKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    ApplicationBuilder,
    ContextTypes,
    MessageHandler,
    filters,
)

from ledgerbot.config import (
    Settings,
    TelegramSettings,
    get_settings,
    validate_all_settings,
)
from ledgerbot.conversation import ConversationEngine, KeyboardSpec
from ledgerbot.orchestrator import create_app_components


logger = structlog.get_logger()

ENGINE_KEY = "engine"


def to_reply_markup(keyboard: Optional[KeyboardSpec]) -> Optional[ReplyKeyboardMarkup]:
    if keyboard is None or not keyboard.rows:
        return None
    return ReplyKeyboardMarkup(
        [[KeyboardButton(label) for label in row] for row in keyboard.rows],
        resize_keyboard=keyboard.resize,
        one_time_keyboard=keyboard.one_time,
    )


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if message is None or user is None or chat is None:
        return

    engine: ConversationEngine = context.application.bot_data[ENGINE_KEY]
    replies = await engine.handle_message(user.id, chat.id, message.text)
    for reply in replies:
        await message.reply_text(
            reply.text,
            parse_mode=ParseMode.HTML,
            reply_markup=to_reply_markup(reply.keyboard),
        )


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error(
        "telegram_update_failed",
        error=str(context.error),
        error_type=type(context.error).__name__,
    )


def build_application(
    engine: ConversationEngine,
    telegram_settings: TelegramSettings,
) -> Application:
    application = ApplicationBuilder().token(telegram_settings.bot_token).build()
    application.bot_data[ENGINE_KEY] = engine
    application.add_handler(MessageHandler(filters.TEXT, handle_text))
    application.add_error_handler(handle_error)
    return application


def failed_settings(settings: Settings) -> dict[str, str]:
    """Settings groups the bot cannot start without, mapped to their error."""
    status = validate_all_settings(settings)
    required = ["telegram", "auth", "ledger", "app"]
    if status.get("app") and settings.app.use_sheets_storage:
        required.append("google_sheets")
    return {
        name: status.get(f"{name}_error", "invalid")
        for name in required
        if not status.get(name)
    }


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = get_settings()
    failed = failed_settings(settings)
    if failed:
        logger.error("settings_invalid", failed=failed)
        raise SystemExit(1)

    if settings.app.debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)

    telegram_settings = settings.telegram
    components = create_app_components(settings)
    application = build_application(components.engine, telegram_settings)

    if telegram_settings.webhook_url:
        logger.info("bot_starting", mode="webhook", port=telegram_settings.webhook_port)
        application.run_webhook(
            listen="0.0.0.0",
            port=telegram_settings.webhook_port,
            webhook_url=telegram_settings.webhook_url,
        )
    else:
        logger.info("bot_starting", mode="polling")
        application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
