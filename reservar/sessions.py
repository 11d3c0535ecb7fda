"""
In-memory booking session store.

Each booking session owns one BookingWizard. Sessions expire after a
period of inactivity; expiring or discarding a session closes its wizard,
which stops the minute clock if it was running.
In production with several workers, pin clients to a worker or move the
drafts to shared storage.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Dict, Optional

if TYPE_CHECKING:
    from .wizard import BookingWizard

logger = logging.getLogger(__name__)


class BookingSessionNotFoundError(Exception):
    """Raised when a booking session id is unknown or expired."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Booking session {session_id} not found or expired")


@dataclass
class BookingSession:
    id: str
    expires_at: datetime
    wizard: Optional["BookingWizard"] = None
    redirect_to: Optional[str] = None

    def navigate(self, path: str) -> None:
        """Handed to the wizard; the next response tells the frontend where to go."""
        self.redirect_to = path

    def take_redirect(self) -> Optional[str]:
        path, self.redirect_to = self.redirect_to, None
        return path


class BookingSessionStore:
    def __init__(self, ttl: timedelta = timedelta(minutes=30)):
        self.ttl = ttl
        self._sessions: Dict[str, BookingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _cleanup_expired_sessions(self) -> None:
        now = datetime.now()
        expired = [sid for sid, s in self._sessions.items() if s.expires_at < now]
        for sid in expired:
            self._close(self._sessions.pop(sid))
            logger.debug(f"Cleaned up expired booking session {sid}")

    def open(self, build_wizard: Callable[[Callable[[str], None]], "BookingWizard"]) -> BookingSession:
        """
        Create a session and its wizard.

        build_wizard receives the session's navigate callback.
        """
        self._cleanup_expired_sessions()
        session = BookingSession(
            id=secrets.token_urlsafe(16),
            expires_at=datetime.now() + self.ttl,
        )
        session.wizard = build_wizard(session.navigate)
        self._sessions[session.id] = session
        logger.info(f"Booking session opened: {session.id}")
        return session

    def get(self, session_id: str) -> BookingSession:
        """
        Return a live session and extend its expiry.

        Raises:
            BookingSessionNotFoundError: unknown or expired id
        """
        self._cleanup_expired_sessions()
        session = self._sessions.get(session_id)
        if session is None:
            raise BookingSessionNotFoundError(session_id)
        session.expires_at = datetime.now() + self.ttl
        return session

    def discard(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._close(session)
        logger.info(f"Booking session discarded: {session_id}")
        return True

    def clear(self) -> None:
        for session in self._sessions.values():
            self._close(session)
        self._sessions.clear()

    @staticmethod
    def _close(session: BookingSession) -> None:
        if session.wizard is not None:
            session.wizard.close()
