# services/ledger.py
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional

import bcrypt

from questportal.core.errors import ConflictError
from questportal.schemas.ledger_schema import LedgerEvent
from questportal.schemas.user_schema import Role, UserRecord
from questportal.services.storage import UserStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # malformed stored hash
        return False


class UserLedger:
    """Single source of truth for user quest and token state.

    All read-modify-write sequences on a record must run inside
    ``locked()``. The lock is re-entrant so services can compose, but it
    must never be held across a call to an external service.
    """

    def __init__(self, store: UserStore, clock: Clock = datetime.now) -> None:
        self.store = store
        self.clock = clock
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield

    # Reads hold the lock as well; stores are not thread-safe on their own
    def get(self, user_id: int) -> Optional[UserRecord]:
        with self.locked():
            return self.store.get(user_id)

    def get_by_username(self, username: str) -> Optional[UserRecord]:
        with self.locked():
            return self.store.get_by_username(username)

    def get_by_referral_code(self, code: str) -> Optional[UserRecord]:
        with self.locked():
            return self.store.get_by_referral_code(code)

    def list_all(self) -> list[UserRecord]:
        with self.locked():
            return self.store.list_all()

    def create(self, username: str, password: str) -> UserRecord:
        # Registration never picks its own role
        return self._insert(username, password, role=Role.user.value)

    def _insert(self, username: str, password: str, **fields) -> UserRecord:
        password_hash = hash_password(password)
        with self.locked():
            if self.store.get_by_username(username) is not None:
                raise ConflictError()
            user = self.store.insert(
                {"username": username, "password_hash": password_hash, "created_at": self.clock(), **fields}
            )
        logger.info("Created user %s (id=%s, role=%s)", user.username, user.id, user.role)
        return user

    def ensure_owner(self, username: str, password: str) -> UserRecord:
        """Create the bootstrap owner account unless it already exists."""
        existing = self.get_by_username(username)
        if existing is not None:
            if existing.role != Role.owner:
                existing = self.update(username, role=Role.owner.value)
            return existing
        return self._insert(username, password, role=Role.owner.value, is_vip=True, vip_expires_at=None)

    def update(self, username: str, **fields) -> Optional[UserRecord]:
        """Shallow-merge ``fields`` into the record. Returns None if unknown."""
        with self.locked():
            user = self.store.get_by_username(username)
            if user is None:
                return None
            if not fields:
                return user
            merged = UserRecord.model_validate({**user.model_dump(), **fields, "id": user.id})
            return self.store.save(merged)

    def record_event(self, event: LedgerEvent) -> LedgerEvent:
        with self.locked():
            return self.store.append_event(event)

    def list_events(self, kind: Optional[str] = None) -> list[LedgerEvent]:
        with self.locked():
            return self.store.list_events(kind)

    def close(self) -> None:
        self.store.close()
