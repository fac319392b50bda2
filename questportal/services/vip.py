import logging
from datetime import timedelta
from typing import Callable, Optional

from questportal.core.errors import NotFoundError
from questportal.schemas.user_schema import UserRecord
from questportal.services.ledger import UserLedger

logger = logging.getLogger(__name__)


class VIPService:
    def __init__(self, ledger: UserLedger, default_duration_days: int = 7) -> None:
        self.ledger = ledger
        self.default_duration_days = default_duration_days

    def is_active(self, user: UserRecord) -> bool:
        if not user.is_vip:
            return False
        # no expiry = permanent
        return user.vip_expires_at is None or self.ledger.clock() <= user.vip_expires_at

    def refresh(self, username: str) -> Optional[UserRecord]:
        """Expire VIP status whose ``vip_expires_at`` has passed."""
        with self.ledger.locked():
            user = self.ledger.get_by_username(username)
            if user is None or not user.is_vip or self.is_active(user):
                return user
            logger.info("VIP expired for %s (expired at %s)", username, user.vip_expires_at)
            return self.ledger.update(username, is_vip=False, vip_expires_at=None)

    def grant(self, username: str, duration_days: Optional[int] = None) -> UserRecord:
        """Grant VIP unless it is already active; an active VIP is not extended."""
        with self.ledger.locked():
            user = self._require(username)
            if self.is_active(user):
                return user
            return self._set(username, True, duration_days)

    def set_status(self, username: str, is_vip: bool, duration_days: Optional[int] = None) -> UserRecord:
        with self.ledger.locked():
            self._require(username)
            return self._set(username, is_vip, duration_days)

    def sync_from_gamepass(self, username: str, owns_gamepass: Callable[[str], bool]) -> UserRecord:
        # external lookup happens before any lock is taken
        owned = owns_gamepass(username)
        if owned:
            return self.grant(username)
        user = self.refresh(username)
        if user is None:
            raise NotFoundError()
        return user

    def _set(self, username: str, is_vip: bool, duration_days: Optional[int]) -> UserRecord:
        expires_at = None
        if is_vip:
            days = duration_days or self.default_duration_days
            expires_at = self.ledger.clock() + timedelta(days=days)
        logger.info("VIP for %s set to %s (expires %s)", username, is_vip, expires_at)
        return self.ledger.update(username, is_vip=is_vip, vip_expires_at=expires_at)

    def _require(self, username: str) -> UserRecord:
        user = self.ledger.get_by_username(username)
        if user is None:
            raise NotFoundError()
        return user
