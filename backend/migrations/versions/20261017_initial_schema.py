"""Initial BarFlow schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_user_id", "session_tokens", ["user_id"])
    op.create_index("ix_session_tokens_token_hash", "session_tokens", ["token_hash"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False),
        sa.Column("sale_price_cents", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_is_active", "products", ["is_active"])

    op.create_table(
        "inventory_stock",
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), primary_key=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "shift_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("opened_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("closed_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("real_cash_cents", sa.Integer(), nullable=True),
        sa.Column("closing_observation", sa.Text(), nullable=True),
        sa.Column("total_revenue_cents", sa.Integer(), nullable=True),
        sa.Column("total_cost_cents", sa.Integer(), nullable=True),
        sa.Column("total_profit_cents", sa.Integer(), nullable=True),
        sa.Column("total_credit_sales_cents", sa.Integer(), nullable=True),
        sa.Column("total_cash_payments_cents", sa.Integer(), nullable=True),
        sa.Column("total_non_cash_payments_cents", sa.Integer(), nullable=True),
        sa.Column("cash_to_deliver_cents", sa.Integer(), nullable=True),
        sa.Column("difference_cents", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shift_sessions_opened_by_user_id", "shift_sessions", ["opened_by_user_id"])
    op.create_index("ix_shift_sessions_closed_by_user_id", "shift_sessions", ["closed_by_user_id"])
    op.create_index("ix_shift_sessions_opened_at", "shift_sessions", ["opened_at"])
    # At most one OPEN shift system-wide
    op.create_index(
        "uq_shift_sessions_single_open",
        "shift_sessions",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    op.create_table(
        "shift_inventory_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_id", sa.Integer(), sa.ForeignKey("shift_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name", sa.String(length=128), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("snapshot_type", sa.String(length=16), nullable=False),
        sa.Column("stock_before", sa.Integer(), nullable=True),
        sa.UniqueConstraint("shift_id", "product_id", "snapshot_type", name="uq_shift_snapshots_shift_product_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shift_inventory_snapshots_shift_id", "shift_inventory_snapshots", ["shift_id"])
    op.create_index("ix_shift_inventory_snapshots_product_id", "shift_inventory_snapshots", ["product_id"])

    op.create_table(
        "shift_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_id", sa.Integer(), sa.ForeignKey("shift_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name", sa.String(length=128), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("revenue_cents", sa.Integer(), nullable=False),
        sa.Column("cost_cents", sa.Integer(), nullable=False),
        sa.Column("profit_cents", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shift_items_shift_id", "shift_items", ["shift_id"])
    op.create_index("ix_shift_items_product_id", "shift_items", ["product_id"])

    op.create_table(
        "shift_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_id", sa.Integer(), sa.ForeignKey("shift_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user_name", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shift_audit_log_shift_id", "shift_audit_log", ["shift_id"])

    op.create_table(
        "credit_customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("document_id", sa.String(length=32), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("max_limit_cents", sa.Integer(), nullable=False),
        sa.Column("current_used_cents", sa.Integer(), nullable=False),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("current_used_cents >= 0", name="ck_credit_customers_used_non_negative"),
        sa.CheckConstraint("max_limit_cents >= 0", name="ck_credit_customers_limit_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_credit_customers_is_active", "credit_customers", ["is_active"])

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("credit_customers.id"), nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("employee_name", sa.String(length=128), nullable=False),
        sa.Column("tx_type", sa.String(length=16), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(length=16), nullable=True),
        sa.Column("observation", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_credit_transactions_amount_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_credit_transactions_customer_id", "credit_transactions", ["customer_id"])
    op.create_index("ix_credit_transactions_employee_id", "credit_transactions", ["employee_id"])
    op.create_index("ix_credit_transactions_tx_type", "credit_transactions", ["tx_type"])
    op.create_index("ix_credit_transactions_occurred_at", "credit_transactions", ["occurred_at"])
    op.create_index("ix_credit_txns_customer_occurred", "credit_transactions", ["customer_id", "occurred_at"])

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_id", sa.Integer(), sa.ForeignKey("shift_sessions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("payment_method", sa.String(length=16), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_shift_id", "sales", ["shift_id"])
    op.create_index("ix_sales_user_id", "sales", ["user_id"])
    op.create_index("ix_sales_created_at", "sales", ["created_at"])

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"])
    op.create_index("ix_sale_items_product_id", "sale_items", ["product_id"])

    op.create_table(
        "app_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bar_name", sa.String(length=128), nullable=False),
        sa.Column("last_export_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False),
        sa.Column("ai_provider", sa.String(length=16), nullable=True),
        sa.Column("ai_api_key", sa.Text(), nullable=True),
        sa.Column("ai_prompt", sa.Text(), nullable=True),
        sa.Column("ai_validated", sa.Boolean(), nullable=False),
        sa.Column("ai_last_tested_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade():
    op.drop_table("app_config")
    op.drop_table("sale_items")
    op.drop_table("sales")
    op.drop_table("credit_transactions")
    op.drop_table("credit_customers")
    op.drop_table("shift_audit_log")
    op.drop_table("shift_items")
    op.drop_table("shift_inventory_snapshots")
    op.drop_index("uq_shift_sessions_single_open", table_name="shift_sessions")
    op.drop_table("shift_sessions")
    op.drop_table("inventory_stock")
    op.drop_table("products")
    op.drop_table("session_tokens")
    op.drop_table("users")
