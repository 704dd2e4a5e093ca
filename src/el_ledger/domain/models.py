"""Domain models for el_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

# credit_transactions.notes is VARCHAR(500)
NOTES_MAX_LENGTH = 500


@dataclass
class CreditBalance:
    id: int
    account_id: str
    balance: Decimal         # may be transiently negative, see UsageMeter
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CreditTransaction:
    id: int                          # BIGSERIAL
    account_id: str
    entry_type: str                  # LedgerEntryType value
    amount: Decimal                  # positive=credit negative=debit
    balance_after: Decimal
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    model: str | None = None
    reference_id: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
