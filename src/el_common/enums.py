"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class AIModel(str, Enum):
    """Billing identifiers for supported models (see el_ledger.domain.pricing)."""
    GPT_4O = "gpt_4o"
    GPT_4O_MINI = "gpt_4o_mini"


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class MessageSender(str, Enum):
    STUDENT = "STUDENT"
    AI = "AI"


class LedgerEntryType(str, Enum):
    AI_USAGE = "AI_USAGE"   # debit, carries token counts and model
    TOP_UP = "TOP_UP"       # credit from a confirmed payment
