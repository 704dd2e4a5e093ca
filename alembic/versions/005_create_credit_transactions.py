"""005: create credit_transactions and credit_topups tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE credit_transactions (
            id                  BIGSERIAL       PRIMARY KEY,
            account_id          VARCHAR(64)     NOT NULL,
            entry_type          VARCHAR(20)     NOT NULL,
            amount              NUMERIC(20, 10) NOT NULL,
            balance_after       NUMERIC(20, 10) NOT NULL,
            prompt_tokens       INT,
            completion_tokens   INT,
            model               VARCHAR(32),
            reference_id        VARCHAR(128),
            notes               VARCHAR(500),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_credit_tx_entry_type CHECK (entry_type IN ('AI_USAGE', 'TOP_UP')),
            CONSTRAINT ck_credit_tx_sign CHECK (
                (entry_type = 'AI_USAGE' AND amount <= 0)
                OR (entry_type = 'TOP_UP' AND amount > 0)
            ),
            CONSTRAINT ck_credit_tx_tokens CHECK (
                COALESCE(prompt_tokens, 0) >= 0 AND COALESCE(completion_tokens, 0) >= 0
            )
        );
    """)
    op.execute("CREATE INDEX idx_credit_tx_account ON credit_transactions (account_id, id DESC);")
    op.execute("""
        CREATE INDEX idx_credit_tx_reference
        ON credit_transactions (reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_credit_transactions_append_only
            BEFORE UPDATE OR DELETE ON credit_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE credit_transactions IS 'Credit ledger, append-only';")

    op.execute("""
        CREATE TABLE credit_topups (
            event_id        VARCHAR(255)    PRIMARY KEY,
            account_id      VARCHAR(64)     NOT NULL,
            amount          NUMERIC(20, 10) NOT NULL,
            transaction_id  BIGINT          REFERENCES credit_transactions(id),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("COMMENT ON TABLE credit_topups IS 'Processed payment events; one credit per event_id';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS credit_topups CASCADE;")
    op.execute("DROP TABLE IF EXISTS credit_transactions CASCADE;")
