"""
Session manager: opaque tokens bound to a principal.

Single active session per principal. `issue` deletes the previous session
record outright, so an older token simply stops resolving. Expiry is
checked lazily on validate/refresh; nothing here runs a timer.

Only a SHA-256 digest of each token is written to disk:
    sessions/tokens/<digest>.json       principal_id, issued_at, expires_at
    sessions/principals/<id>.json       digest of that principal's live token
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from ..core.clock import Clock, utcnow
from ..core.locks import KeyedLocks, lock_key_session
from ..stores.documents import DocumentStore
from ..stores.principals import PrincipalStore
from ..utils.logger import get_logger
from .models import Principal, Session

logger = get_logger(__name__)

TOKEN_BYTES = 32


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionManager:
    """Issues, validates, refreshes and revokes sessions."""

    def __init__(
        self,
        data_dir: Path,
        principals: PrincipalStore,
        locks: KeyedLocks,
        timeout: timedelta = timedelta(hours=24),
        clock: Clock = utcnow,
    ):
        self.principals = principals
        self.locks = locks
        self.timeout = timeout
        self.clock = clock
        self._tokens = DocumentStore(Path(data_dir) / "sessions" / "tokens")
        self._by_principal = DocumentStore(Path(data_dir) / "sessions" / "principals")

    def _read(self, digest: str) -> Optional[dict]:
        return self._tokens.get(digest)

    def _drop(self, digest: str, principal_id: str) -> None:
        """Delete a session record and its index entry. Caller holds the lock."""
        self._tokens.delete(digest)
        index = self._by_principal.get(principal_id)
        if index and index.get("token_digest") == digest:
            self._by_principal.delete(principal_id)

    def issue(self, principal_id: str) -> Session:
        """Start a fresh session, destroying any previous one for this principal."""
        self.principals.get_principal(principal_id)

        token = secrets.token_urlsafe(TOKEN_BYTES)
        digest = token_digest(token)
        now = self.clock()
        session = Session(
            principal_id=principal_id,
            token=token,
            issued_at=now,
            expires_at=now + self.timeout,
        )

        with self.locks.acquire(lock_key_session(principal_id)):
            previous = self._by_principal.get(principal_id)
            if previous:
                self._tokens.delete(previous["token_digest"])
            self._tokens.put(
                digest,
                {
                    "principal_id": principal_id,
                    "issued_at": session.issued_at.isoformat(),
                    "expires_at": session.expires_at.isoformat(),
                },
            )
            self._by_principal.put(principal_id, {"token_digest": digest})

        logger.info(
            "Session issued",
            principal_id=principal_id,
            replaced_previous=bool(previous),
            expires_at=session.expires_at.isoformat(),
        )
        return session

    def _evict(self, digest: str, principal_id: str, reason: str) -> None:
        with self.locks.acquire(lock_key_session(principal_id)):
            record = self._read(digest)
            if record is None:
                return
            if reason == "expired" and not self._expired(record):
                # Refreshed concurrently.
                return
            self._drop(digest, principal_id)
        logger.info("Session evicted", principal_id=principal_id, reason=reason)

    def _expired(self, record: dict) -> bool:
        return self.clock() >= datetime.fromisoformat(record["expires_at"])

    def validate(self, token: str) -> Optional[Principal]:
        """Return the session's principal, or None if the token is not valid."""
        if not token:
            return None
        digest = token_digest(token)
        record = self._read(digest)
        if record is None:
            return None
        principal_id = record["principal_id"]
        if self._expired(record):
            self._evict(digest, principal_id, "expired")
            return None
        principal = self.principals.find_principal(principal_id)
        if principal is None:
            self._evict(digest, principal_id, "orphaned")
            return None
        return principal

    def refresh(self, token: str) -> Optional[Session]:
        """Extend a valid session to now + timeout. None if not valid."""
        if not token:
            return None
        digest = token_digest(token)
        record = self._read(digest)
        if record is None:
            return None
        principal_id = record["principal_id"]

        with self.locks.acquire(lock_key_session(principal_id)):
            record = self._read(digest)
            if record is None:
                return None
            if self._expired(record) or self.principals.find_principal(principal_id) is None:
                self._drop(digest, principal_id)
                return None
            expires_at = self.clock() + self.timeout
            record["expires_at"] = expires_at.isoformat()
            self._tokens.put(digest, record)

        return Session.model_validate({**record, "token": token})

    def revoke(self, token: str) -> None:
        """Invalidate a token immediately. Unknown tokens are ignored."""
        if not token:
            return
        digest = token_digest(token)
        record = self._read(digest)
        if record is None:
            return
        principal_id = record["principal_id"]
        with self.locks.acquire(lock_key_session(principal_id)):
            self._drop(digest, principal_id)
        logger.info("Session revoked", principal_id=principal_id)

    def revoke_principal(self, principal_id: str) -> None:
        """Invalidate whatever session the principal currently holds."""
        with self.locks.acquire(lock_key_session(principal_id)):
            index = self._by_principal.get(principal_id)
            if not index:
                return
            self._tokens.delete(index["token_digest"])
            self._by_principal.delete(principal_id)
        logger.info("Session revoked", principal_id=principal_id)

    def get_session(self, token: str) -> Optional[Session]:
        """Current session record for a token, without side effects."""
        if not token:
            return None
        record = self._read(token_digest(token))
        if record is None or self._expired(record):
            return None
        return Session.model_validate({**record, "token": token})
