"""
Conversation Session Store

Owns every in-flight conversation. Constructed once at start-up and
handed to the engine; there is no module-level session state.

Lifecycle:
- A session is created on the first authorized message from a user
- It is mutated by every message from that user
- It is reset on /start, cancel, back-to-menu, flow completion or failure
- It lives in process memory only; a restart drops in-flight flows

Messages from one user are serialized with a per-user asyncio.Lock so two
overlapping updates can never interleave their changes to one session.
"""

import asyncio
import threading
from typing import Optional

import structlog

from ledgerbot.models.session import Session, Snapshot, Step


logger = structlog.get_logger()


class SessionStore:
    """Concurrency-safe map from user id to Session."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()

    def get(self, user_id: str) -> Session:
        """Return the user's session, creating it on first contact."""
        with self._guard:
            session = self._sessions.get(user_id)
            if session is None:
                session = Session(user_id=user_id)
                self._sessions[user_id] = session
                logger.debug("session_created", user_id=user_id)
            return session

    def peek(self, user_id: str) -> Optional[Session]:
        """Return the session if one exists, without creating it."""
        with self._guard:
            return self._sessions.get(user_id)

    def lock_for(self, user_id: str) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[user_id] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        with self._guard:
            return user_id in self._sessions

    # Navigation

    @staticmethod
    def save(session: Session) -> None:
        """Push a deep copy of the current (step, draft)."""
        session.history.append(session.snapshot())

    @staticmethod
    def back(session: Session) -> bool:
        """
        Pop one level of history and restore it.

        Returns False (and changes nothing) when the history is empty.
        """
        if not session.history:
            return False
        session.restore(session.history.pop())
        return True

    @staticmethod
    def reset(session: Session) -> None:
        session.reset()

    @staticmethod
    def begin(session: Session, step: Step, draft) -> None:
        """
        Start a flow from anywhere.

        History becomes a single idle snapshot, so Back from the first
        step lands on the main menu.
        """
        session.history = [Snapshot(step=Step.IDLE)]
        session.step = step
        session.draft = draft
