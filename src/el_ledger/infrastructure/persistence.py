"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

Balance mutation is a single atomic upsert (INSERT ... ON CONFLICT DO UPDATE
... RETURNING): the row lock serializes concurrent debits/credits on the same
account, so none is lost or applied twice.

Transaction ownership: The CALLER (UsageMeter) is responsible for committing
or rolling back. Nothing here commits.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.errors import InternalError
from src.el_ledger.domain.models import CreditBalance, CreditTransaction

# ---------------------------------------------------------------------------
# SQL: credit_balances
# ---------------------------------------------------------------------------

_GET_BALANCE_SQL = text("""
    SELECT id, account_id, balance, version, created_at, updated_at
    FROM credit_balances
    WHERE account_id = :account_id
""")

# Lazily creates the row at :delta (0 + delta) on the first financial event.
_APPLY_DELTA_SQL = text("""
    INSERT INTO credit_balances (account_id, balance, version)
    VALUES (:account_id, :delta, 1)
    ON CONFLICT (account_id) DO UPDATE
        SET balance = credit_balances.balance + EXCLUDED.balance,
            version = credit_balances.version + 1,
            updated_at = NOW()
    RETURNING id, account_id, balance, version, created_at, updated_at
""")

# ---------------------------------------------------------------------------
# SQL: credit_transactions (append-only)
# ---------------------------------------------------------------------------

_INSERT_TRANSACTION_SQL = text("""
    INSERT INTO credit_transactions
        (account_id, entry_type, amount, balance_after,
         prompt_tokens, completion_tokens, model, reference_id, notes)
    VALUES
        (:account_id, :entry_type, :amount, :balance_after,
         :prompt_tokens, :completion_tokens, :model, :reference_id, :notes)
    RETURNING id, account_id, entry_type, amount, balance_after,
              prompt_tokens, completion_tokens, model, reference_id, notes, created_at
""")

_LIST_TRANSACTIONS_SQL = text("""
    SELECT id, account_id, entry_type, amount, balance_after,
           prompt_tokens, completion_tokens, model, reference_id, notes, created_at
    FROM credit_transactions
    WHERE account_id = :account_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = CAST(:entry_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: credit_topups (payment dedupe keys)
# ---------------------------------------------------------------------------

_CLAIM_TOPUP_SQL = text("""
    INSERT INTO credit_topups (event_id, account_id, amount)
    VALUES (:event_id, :account_id, :amount)
    ON CONFLICT (event_id) DO NOTHING
    RETURNING event_id
""")

_LINK_TOPUP_SQL = text("""
    UPDATE credit_topups
    SET transaction_id = :transaction_id
    WHERE event_id = :event_id
""")


def _row_to_balance(row: object) -> CreditBalance:
    return CreditBalance(
        id=row.id,  # type: ignore[attr-defined]
        account_id=row.account_id,  # type: ignore[attr-defined]
        balance=Decimal(row.balance),  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_transaction(row: object) -> CreditTransaction:
    return CreditTransaction(
        id=row.id,  # type: ignore[attr-defined]
        account_id=row.account_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=Decimal(row.amount),  # type: ignore[attr-defined]
        balance_after=Decimal(row.balance_after),  # type: ignore[attr-defined]
        prompt_tokens=row.prompt_tokens,  # type: ignore[attr-defined]
        completion_tokens=row.completion_tokens,  # type: ignore[attr-defined]
        model=row.model,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        notes=row.notes,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete repository: all mutations atomic at the SQL level."""

    async def get_balance(
        self, db: AsyncSession, account_id: str
    ) -> CreditBalance | None:
        result = await db.execute(_GET_BALANCE_SQL, {"account_id": account_id})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def apply_delta(
        self, db: AsyncSession, account_id: str, delta: Decimal
    ) -> CreditBalance:
        result = await db.execute(
            _APPLY_DELTA_SQL, {"account_id": account_id, "delta": delta}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Balance upsert returned no rows; this should never happen")
        return _row_to_balance(row)

    async def append_transaction(
        self, db: AsyncSession, entry: CreditTransaction
    ) -> CreditTransaction:
        result = await db.execute(
            _INSERT_TRANSACTION_SQL,
            {
                "account_id": entry.account_id,
                "entry_type": entry.entry_type,
                "amount": entry.amount,
                "balance_after": entry.balance_after,
                "prompt_tokens": entry.prompt_tokens,
                "completion_tokens": entry.completion_tokens,
                "model": entry.model,
                "reference_id": entry.reference_id,
                "notes": entry.notes,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows; this should never happen")
        return _row_to_transaction(row)

    async def claim_topup_event(
        self, db: AsyncSession, event_id: str, account_id: str, amount: Decimal
    ) -> bool:
        """Record the dedupe key. False means the event was already processed."""
        result = await db.execute(
            _CLAIM_TOPUP_SQL,
            {"event_id": event_id, "account_id": account_id, "amount": amount},
        )
        return result.fetchone() is not None

    async def link_topup_transaction(
        self, db: AsyncSession, event_id: str, transaction_id: int
    ) -> None:
        await db.execute(
            _LINK_TOPUP_SQL, {"event_id": event_id, "transaction_id": transaction_id}
        )

    async def list_transactions(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[CreditTransaction]:
        result = await db.execute(
            _LIST_TRANSACTIONS_SQL,
            {
                "account_id": account_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        rows = result.fetchall()
        return [_row_to_transaction(row) for row in rows]
