"""
Authorization Gate

The bot is private. Only the Telegram user ids listed in
AUTHORIZED_USER_ID / AUTHORIZED_USER_IDS may talk to it; everyone else
gets a fixed denial and never gets a session.
"""

from typing import Iterable, Optional

from ledgerbot.config import AuthSettings


UNAUTHORIZED_MESSAGE = (
    "🚫 Unauthorized access. This bot is private and only accessible "
    "to authorized users."
)


class AuthorizationGate:
    """Maps a user id to allow/deny."""

    def __init__(
        self,
        allowed_ids: Optional[Iterable[str]] = None,
        settings: Optional[AuthSettings] = None,
    ):
        if allowed_ids is None:
            allowed_ids = (settings or AuthSettings()).allowed_ids
        self._allowed = {str(user_id).strip() for user_id in allowed_ids}

    def is_authorized(self, user_id) -> bool:
        return str(user_id).strip() in self._allowed

    def __len__(self) -> int:
        return len(self._allowed)
