"""
Conversation Package

The chat state machine: sessions, prompts, keyboards and the engine that
drives them. Transport-neutral; the Telegram bot and the local console
both feed text in and send the returned replies out.
"""

from ledgerbot.conversation import keyboards
from ledgerbot.conversation.keyboards import KeyboardSpec, Reply
from ledgerbot.conversation.sessions import SessionStore
from ledgerbot.conversation.prompts import ConversationPrompts
from ledgerbot.conversation.engine import (
    ConversationEngine,
    Effect,
    StepRule,
    listed_position,
)

__all__ = [
    "ConversationEngine",
    "ConversationPrompts",
    "Effect",
    "KeyboardSpec",
    "Reply",
    "SessionStore",
    "StepRule",
    "keyboards",
    "listed_position",
]
