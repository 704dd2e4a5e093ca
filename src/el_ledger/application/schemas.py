"""Pydantic schemas for el_ledger API.

Amounts are serialized as decimal strings: JSON floats would lose the
fractions of a cent that individual AI calls cost.
"""

from decimal import Decimal

from pydantic import BaseModel

from src.el_common.credits import credits_to_display
from src.el_common.datetime_utils import to_iso
from src.el_ledger.domain.models import CreditTransaction


class BalanceResponse(BaseModel):
    account_id: str
    balance: str
    balance_display: str

    @classmethod
    def from_amount(cls, account_id: str, balance: Decimal) -> "BalanceResponse":
        return cls(
            account_id=account_id,
            balance=str(balance),
            balance_display=credits_to_display(balance),
        )


class TransactionItem(BaseModel):
    id: int
    entry_type: str
    amount: str
    amount_display: str
    balance_after: str
    prompt_tokens: int | None
    completion_tokens: int | None
    model: str | None
    reference_id: str | None
    notes: str | None
    created_at: str | None  # ISO8601 string

    @classmethod
    def from_domain(cls, t: CreditTransaction) -> "TransactionItem":
        return cls(
            id=t.id,
            entry_type=t.entry_type,
            amount=str(t.amount),
            amount_display=credits_to_display(t.amount),
            balance_after=str(t.balance_after),
            prompt_tokens=t.prompt_tokens,
            completion_tokens=t.completion_tokens,
            model=t.model,
            reference_id=t.reference_id,
            notes=t.notes,
            created_at=to_iso(t.created_at),
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class ReconciliationResponse(BaseModel):
    balanced: bool
    violations: list[str]
