"""Repository Protocol: dependency inversion for testability.

Unit tests inject a mock or an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_ledger.domain.models import CreditBalance, CreditTransaction


class LedgerRepositoryProtocol(Protocol):
    async def get_balance(
        self, db: AsyncSession, account_id: str
    ) -> CreditBalance | None: ...

    async def apply_delta(
        self, db: AsyncSession, account_id: str, delta: Decimal
    ) -> CreditBalance: ...

    async def append_transaction(
        self, db: AsyncSession, entry: CreditTransaction
    ) -> CreditTransaction: ...

    async def claim_topup_event(
        self, db: AsyncSession, event_id: str, account_id: str, amount: Decimal
    ) -> bool: ...

    async def link_topup_transaction(
        self, db: AsyncSession, event_id: str, transaction_id: int
    ) -> None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[CreditTransaction]: ...
