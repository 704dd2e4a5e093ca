"""UsageMeter: turns token usage and top-ups into ledger writes.

Every ledger event is two writes: the balance upsert and the append-only
transaction row. They share one DB transaction; ``commit`` happens only after
both succeed, any failure rolls both back. A storage failure surfaces as
StorageUnavailableError (retriable) and leaves balance and log untouched.

Spending is authorized by ``require_funds`` (check, not reserve). Two
concurrent AI requests on one account may both pass the check before either
is metered, so the balance can dip below zero by at most the cost of the
calls that were in flight when it reached zero. Later requests are refused
until the account is topped up again.
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.credits import quantize_credits
from src.el_common.enums import LedgerEntryType
from src.el_common.errors import (
    InsufficientCreditsError,
    InvalidCreditAmountError,
    StorageUnavailableError,
)
from src.el_ledger.domain.models import NOTES_MAX_LENGTH, CreditTransaction
from src.el_ledger.domain.pricing import calculate_cost
from src.el_ledger.domain.repository import LedgerRepositoryProtocol
from src.el_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


def _clip_notes(notes: str) -> str:
    if len(notes) <= NOTES_MAX_LENGTH:
        return notes
    return notes[: NOTES_MAX_LENGTH - 3] + "..."


class UsageMeter:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def require_funds(self, db: AsyncSession, account_id: str) -> Decimal:
        """Raise InsufficientCreditsError unless the stored balance is > 0.

        Always read from the database; balances are never cached.
        """
        try:
            balance = await self._repo.get_balance(db, account_id)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("Could not read credit balance") from exc
        if balance is None or balance.balance <= 0:
            raise InsufficientCreditsError(
                account_id, balance.balance if balance else None
            )
        return balance.balance

    async def meter_usage(
        self,
        db: AsyncSession,
        account_id: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        notes: str,
        reference_id: str | None = None,
    ) -> CreditTransaction:
        # Pricing errors surface before any write.
        cost = calculate_cost(model, prompt_tokens, completion_tokens)
        entry = await self._apply(
            db,
            account_id,
            delta=-cost,
            entry_type=LedgerEntryType.AI_USAGE,
            notes=notes,
            reference_id=reference_id,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            model=model,
        )
        logger.info(
            "Metered %s credits for account=%s model=%s tokens=%d/%d",
            cost, account_id, model, prompt_tokens, completion_tokens,
        )
        return entry

    async def credit_account(
        self,
        db: AsyncSession,
        account_id: str,
        amount: Decimal,
        notes: str,
        event_id: str | None = None,
    ) -> CreditTransaction | None:
        """Credit a positive amount.

        With ``event_id`` the dedupe key is claimed inside the same DB
        transaction as the credit; a repeated event_id returns None and
        changes nothing.
        """
        amount = quantize_credits(amount)
        if amount <= 0:
            raise InvalidCreditAmountError(amount)

        if event_id is not None:
            try:
                claimed = await self._repo.claim_topup_event(db, event_id, account_id, amount)
            except SQLAlchemyError as exc:
                await db.rollback()
                raise StorageUnavailableError("Could not record payment event") from exc
            if not claimed:
                await db.rollback()
                logger.info(
                    "Duplicate top-up event %s for account=%s ignored", event_id, account_id
                )
                return None

        return await self._apply(
            db,
            account_id,
            delta=amount,
            entry_type=LedgerEntryType.TOP_UP,
            notes=notes,
            reference_id=event_id,
            link_event_id=event_id,
        )

    async def _apply(
        self,
        db: AsyncSession,
        account_id: str,
        delta: Decimal,
        entry_type: LedgerEntryType,
        notes: str,
        reference_id: str | None,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        model: str | None = None,
        link_event_id: str | None = None,
    ) -> CreditTransaction:
        try:
            balance = await self._repo.apply_delta(db, account_id, delta)
            entry = await self._repo.append_transaction(
                db,
                CreditTransaction(
                    id=0,
                    account_id=account_id,
                    entry_type=entry_type.value,
                    amount=delta,
                    balance_after=balance.balance,
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    model=model,
                    reference_id=reference_id,
                    notes=_clip_notes(notes),
                ),
            )
            if link_event_id is not None:
                await self._repo.link_topup_transaction(db, link_event_id, entry.id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(
                "Ledger write failed for account=%s delta=%s (%s): %s",
                account_id, delta, entry_type.value, exc,
            )
            raise StorageUnavailableError("Could not write to the credit ledger") from exc
        except Exception:
            await db.rollback()
            raise
        return entry
