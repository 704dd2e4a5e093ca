"""Ledger reconciliation: balance == SUM(transactions.amount) per account."""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# FULL OUTER JOIN also catches transactions whose balance row is missing.
_MISMATCH_SQL = text("""
    SELECT COALESCE(b.account_id, s.account_id) AS account_id,
           COALESCE(b.balance, 0)               AS balance,
           COALESCE(s.total, 0)                 AS ledger_sum
    FROM credit_balances b
    FULL OUTER JOIN (
        SELECT account_id, SUM(amount) AS total
        FROM credit_transactions
        GROUP BY account_id
    ) s ON s.account_id = b.account_id
    WHERE COALESCE(b.balance, 0) <> COALESCE(s.total, 0)
      AND (CAST(:account_id AS TEXT) IS NULL
           OR COALESCE(b.account_id, s.account_id) = CAST(:account_id AS TEXT))
    ORDER BY 1
""")


async def verify_ledger_reconciliation(
    db: AsyncSession, account_id: str | None = None
) -> list[str]:
    """Return one violation string per account whose balance drifted from its log."""
    rows = (await db.execute(_MISMATCH_SQL, {"account_id": account_id})).fetchall()
    violations: list[str] = []
    for row in rows:
        msg = (
            f"Ledger mismatch for account {row.account_id}: "
            f"balance={row.balance} != sum(transactions)={row.ledger_sum}"
        )
        violations.append(msg)
        logger.error(msg)
    return violations
