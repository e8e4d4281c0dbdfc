"""Tests for component wiring and the Telegram keyboard mapping."""

import pytest

from ledgerbot import telegram_bot
from ledgerbot.config import Settings, validate_all_settings
from ledgerbot.conversation import keyboards as kb
from ledgerbot.orchestrator import create_app_components
from ledgerbot.services.storage import InMemoryLedgerStorage
from ledgerbot.telegram_bot import failed_settings, to_reply_markup


class TestCreateAppComponents:
    """Tests for the factory."""

    async def test_in_memory_components(self):
        components = create_app_components(
            settings=Settings(),
            use_storage=False,
            allowed_ids=["42"],
        )
        assert isinstance(components.storage, InMemoryLedgerStorage)
        assert components.sheets_client is None

        replies = await components.engine.handle_message(42, 42, "/start")
        assert replies[0].keyboard == kb.main_menu_keyboard()

        replies = await components.engine.handle_message(7, 7, "/start")
        assert replies[0].text.startswith("🚫 Unauthorized access.")


class TestReplyMarkup:
    """Tests for KeyboardSpec -> ReplyKeyboardMarkup."""

    def test_rows_are_preserved(self):
        markup = to_reply_markup(kb.main_menu_keyboard())
        labels = [[button.text for button in row] for row in markup.keyboard]
        assert labels == kb.main_menu_keyboard().rows
        assert markup.one_time_keyboard is False
        assert markup.resize_keyboard is True

    def test_no_keyboard(self):
        assert to_reply_markup(None) is None


class TestStartupCheck:
    """Tests for the settings check run before the bot starts."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in (
            "TELEGRAM_BOT_TOKEN",
            "AUTHORIZED_USER_ID",
            "AUTHORIZED_USER_IDS",
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_SPREADSHEET_ID",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("USE_SHEETS_STORAGE", "false")

    def test_complete_settings(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("AUTHORIZED_USER_ID", "42")

        status = validate_all_settings(Settings())
        assert status["telegram"] and status["auth"]
        assert failed_settings(Settings()) == {}

    def test_missing_token_and_users(self):
        failed = failed_settings(Settings())
        assert set(failed) == {"telegram", "auth"}
        assert failed["auth"] == "No authorized user ids configured"

    def test_sheets_required_only_when_used(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("AUTHORIZED_USER_IDS", "42, 43")
        monkeypatch.setenv("USE_SHEETS_STORAGE", "true")

        assert set(failed_settings(Settings())) == {"google_sheets"}

    def test_main_exits_on_invalid_settings(self, monkeypatch):
        monkeypatch.setattr(telegram_bot, "get_settings", Settings)
        with pytest.raises(SystemExit):
            telegram_bot.main()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
