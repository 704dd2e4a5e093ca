"""004: create credit_balances table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # No balance >= 0 check: check-then-meter lets in-flight calls dip below 0.
    op.execute("""
        CREATE TABLE credit_balances (
            id              BIGSERIAL       PRIMARY KEY,
            account_id      VARCHAR(64)     NOT NULL,
            balance         NUMERIC(20, 10) NOT NULL DEFAULT 0,
            version         BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_credit_balances_account UNIQUE (account_id)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_credit_balances_updated_at
            BEFORE UPDATE ON credit_balances
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE credit_balances IS 'Credit balance per account; equals SUM(credit_transactions.amount)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS credit_balances CASCADE;")
