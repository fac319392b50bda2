import logging
from dataclasses import dataclass
from typing import Optional

from questportal.core.errors import NotFoundError
from questportal.schemas.ledger_schema import Referral
from questportal.schemas.user_schema import UserRecord
from questportal.services.ledger import UserLedger
from questportal.services.vip import VIPService
from questportal.utils.codes import random_chunk

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


@dataclass
class ReferralPayout:
    regular_payout: bool = False
    vip_payout: int = 0
    inviter_username: Optional[str] = None


class ReferralService:
    """Invite codes and inviter payouts.

    Regular payout: the inviter earns one token, once, when the invitee has
    earned ``regular_threshold`` tokens. VIP payout: while the inviter is
    VIP, one token per ``vip_step`` tokens the invitee earns, paying only
    the part not paid out yet.
    """

    def __init__(self, ledger: UserLedger, vip: VIPService, regular_threshold: int = 10, vip_step: int = 20) -> None:
        self.ledger = ledger
        self.vip = vip
        self.regular_threshold = regular_threshold
        self.vip_step = vip_step

    def issue_code(self, username: str) -> str:
        with self.ledger.locked():
            user = self.ledger.get_by_username(username)
            if user is None:
                raise NotFoundError()
            if user.referral_code:
                return user.referral_code

            code = None
            for _ in range(MAX_CODE_ATTEMPTS):
                candidate = f"{username.upper()}-{random_chunk(4)}"
                if self.ledger.get_by_referral_code(candidate) is None:
                    code = candidate
                    break
            if code is None:
                code = f"{username.upper()}-{self.ledger.clock().strftime('%H%M%S%f')}"

            self.ledger.update(username, referral_code=code)
        logger.info("Issued referral code %s to %s", code, username)
        return code

    def link(self, invitee: UserRecord, referral_code: str) -> Optional[Referral]:
        with self.ledger.locked():
            inviter = self.ledger.get_by_referral_code(referral_code)
            if inviter is None or inviter.id == invitee.id:
                logger.info("Ignoring referral code %r for %s", referral_code, invitee.username)
                return None
            now = self.ledger.clock()
            referral = self.ledger.store.insert_referral(
                Referral(inviter_id=inviter.id, invitee_id=invitee.id, created_at=now, updated_at=now)
            )
            self.ledger.update(invitee.username, referred_by=inviter.id)
        logger.info("%s was referred by %s", invitee.username, inviter.username)
        return referral

    def on_token_awarded(self, invitee: UserRecord) -> ReferralPayout:
        with self.ledger.locked():
            referral = self.ledger.store.get_referral_by_invitee(invitee.id)
            if referral is None:
                return ReferralPayout()
            inviter = self.ledger.get(referral.inviter_id)
            if inviter is None:
                return ReferralPayout()

            payout = ReferralPayout(inviter_username=inviter.username)
            referral.tokens_earned_by_invitee += 1
            earned = referral.tokens_earned_by_invitee

            if not referral.regular_payout_made and earned >= self.regular_threshold:
                referral.regular_payout_made = True
                payout.regular_payout = True

            if self.vip.is_active(inviter):
                owed = earned // self.vip_step - referral.vip_tokens_paid_out
                if owed > 0:
                    referral.vip_tokens_paid_out += owed
                    payout.vip_payout = owed

            credit = int(payout.regular_payout) + payout.vip_payout
            if credit:
                self.ledger.update(inviter.username, token_count=inviter.token_count + credit)
                logger.info("Referral payout of %s token(s) to %s for %s", credit, inviter.username, invitee.username)

            referral.updated_at = self.ledger.clock()
            self.ledger.store.save_referral(referral)
        return payout
