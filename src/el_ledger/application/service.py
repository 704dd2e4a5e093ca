"""LedgerApplicationService: read side of the credit ledger.

Read-only; no commit/rollback. Writes go through UsageMeter.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.pagination import cursor_decode, cursor_encode
from src.el_ledger.application.schemas import (
    BalanceResponse,
    ReconciliationResponse,
    TransactionItem,
    TransactionListResponse,
)
from src.el_ledger.domain.reconciliation import verify_ledger_reconciliation
from src.el_ledger.domain.repository import LedgerRepositoryProtocol
from src.el_ledger.infrastructure.persistence import LedgerRepository


class LedgerApplicationService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_credit_balance(self, db: AsyncSession, account_id: str) -> BalanceResponse:
        # No row yet means no financial event yet: balance is 0.
        balance = await self._repo.get_balance(db, account_id)
        amount = balance.balance if balance else Decimal(0)
        return BalanceResponse.from_amount(account_id, amount)

    async def list_transactions(
        self,
        db: AsyncSession,
        account_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> TransactionListResponse:
        last_id = cursor_decode(cursor)
        cursor_id = last_id if isinstance(last_id, int) else None
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_transactions(
            db, account_id, cursor_id, limit + 1, entry_type
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(
            items=[TransactionItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def reconcile(
        self, db: AsyncSession, account_id: str | None = None
    ) -> ReconciliationResponse:
        violations = await verify_ledger_reconciliation(db, account_id)
        return ReconciliationResponse(balanced=not violations, violations=violations)
