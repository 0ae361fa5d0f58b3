"""
Session Manager

Maps opaque session tokens (delivered in an HTTP-only cookie) to user ids.

    Unauthenticated -> Active (login) -> Expired / Revoked (ttl, logout)

A terminal session is never revived; every login issues a fresh token.
Expiry is lazy: an expired record is dropped when it is looked up, and
purge_expired() sweeps the rest.
"""

import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from logging_config import logger
from schemas import Session, utcnow
from security import generate_session_token


class SessionManager:
    def __init__(self, ttl_seconds: int, clock: Optional[Callable[[], datetime]] = None):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utcnow
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def login(self, user_id: int) -> str:
        """Create a new session for user_id and return its token"""
        now = self._clock()
        token = generate_session_token()
        with self._lock:
            self._purge_locked(now)
            self._sessions[token] = Session(
                token=token,
                user_id=user_id,
                created_at=now,
                expires_at=now + self.ttl,
            )
        return token

    def resolve(self, token: Optional[str]) -> Optional[int]:
        """Return the user id behind token, or None if absent or expired"""
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.expires_at <= self._clock():
                del self._sessions[token]
                return None
            return session.user_id

    def revoke(self, token: Optional[str]) -> None:
        """Drop the session; revoking an unknown token is a no-op"""
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked(self._clock())

    def active_count(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for s in self._sessions.values() if s.expires_at > now)

    def _purge_locked(self, now: datetime) -> int:
        expired = [t for t, s in self._sessions.items() if s.expires_at <= now]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug(f"Purged {len(expired)} expired sessions")
        return len(expired)
