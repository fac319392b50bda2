import logging
from dataclasses import dataclass

from questportal.core.errors import InsufficientTokensError, InvalidInputError, NotFoundError
from questportal.schemas.ledger_schema import EventKind, LedgerEvent
from questportal.schemas.user_schema import UserRecord
from questportal.services.ledger import UserLedger
from questportal.services.vip import VIPService
from questportal.utils.codes import redemption_code

logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    token: str
    remaining_tokens: int
    reused: bool = False


class RedemptionEngine:
    def __init__(
        self,
        ledger: UserLedger,
        vip: VIPService,
        prefix: str = "BLUX",
        standard_cost: int = 10,
        vip_cost: int = 1,
    ) -> None:
        self.ledger = ledger
        self.vip = vip
        self.prefix = prefix
        self.standard_cost = standard_cost
        self.vip_cost = vip_cost

    def cost_for(self, user: UserRecord) -> int:
        return self.vip_cost if self.vip.is_active(user) else self.standard_cost

    def generate_code(self, username: str) -> RedemptionResult:
        with self.ledger.locked():
            # 1. Refresh VIP so an expired pass pays the standard price
            user = self.vip.refresh(username)
            if user is None:
                raise NotFoundError()

            # 2. A live code is handed back without charging again
            if user.has_outstanding_code():
                return RedemptionResult(token=user.token, remaining_tokens=user.token_count, reused=True)

            # 3. Balance check
            cost = self.cost_for(user)
            if user.token_count < cost:
                raise InsufficientTokensError(needed=cost - user.token_count, required=cost)

            # 4. Issue the code and charge in the same locked section
            token = redemption_code(self.prefix)
            updated = self.ledger.update(
                username,
                token=token,
                is_token_redeemed=False,
                token_count=user.token_count - cost,
            )

        logger.info("Issued redemption code to %s for %s token(s)", username, cost)
        return RedemptionResult(token=token, remaining_tokens=updated.token_count)

    def confirm(self, username: str, token: str) -> UserRecord:
        """One-time confirmation called by the game server."""
        with self.ledger.locked():
            user = self.ledger.get_by_username(username)
            if user is None:
                raise NotFoundError()
            if user.token is None or user.token != token:
                raise InvalidInputError("Invalid token")
            if user.is_token_redeemed:
                raise InvalidInputError("Token has already been redeemed")

            updated = self.ledger.update(username, is_token_redeemed=True)
            self.ledger.record_event(
                LedgerEvent(kind=EventKind.code_redeemed, user_id=user.id, occurred_at=self.ledger.clock())
            )

        logger.info("Redemption code confirmed for %s", username)
        return updated
