"""Credit top-up handler: turns a confirmed payment into a ledger credit.

Idempotent per provider event id: UsageMeter.credit_account records the
event id in ``credit_topups`` inside the same DB transaction as the credit,
so a redelivered event credits nothing.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.credits import to_credits
from src.el_common.errors import InvalidCreditAmountError
from src.el_ledger.application.metering import UsageMeter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopUpResult:
    event_id: str
    account_id: str
    credits: Decimal
    duplicate: bool
    transaction_id: int | None = None


class PaymentApplicationService:
    def __init__(self, meter: UsageMeter | None = None) -> None:
        self._meter = meter or UsageMeter()

    async def handle_payment_confirmed(
        self,
        db: AsyncSession,
        event_id: str,
        account_id: str,
        credits: Decimal | int | str,
    ) -> TopUpResult:
        try:
            amount = to_credits(credits)
        except InvalidOperation as exc:
            # infinity or not a number at all
            raise InvalidCreditAmountError(Decimal(0)) from exc
        if amount.is_nan():
            raise InvalidCreditAmountError(Decimal(0))

        entry = await self._meter.credit_account(
            db,
            account_id,
            amount,
            notes=f"Payment: {credits} credits purchased via Stripe",
            event_id=event_id,
        )
        if entry is None:
            logger.info("Payment event %s already applied; skipped", event_id)
            return TopUpResult(event_id, account_id, amount, duplicate=True)

        logger.info("Credited %s to account=%s for event=%s", amount, account_id, event_id)
        return TopUpResult(
            event_id, account_id, entry.amount, duplicate=False, transaction_id=entry.id
        )
