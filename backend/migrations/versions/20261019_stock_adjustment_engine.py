"""Stock adjustment approval and ledger posting schema

Revision ID: sa20261019
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "sa20261019"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(nullable_updated=True):
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=nullable_updated),
    ]


def upgrade():
    # Tenancy
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_organizations_code", "organizations", ["code"], unique=True)
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"])

    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "name", name="uq_stores_org_name"),
        sa.UniqueConstraint("org_id", "code", name="uq_stores_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stores_org_id", "stores", ["org_id"])
    op.create_index("ix_stores_code", "stores", ["code"])

    # Master data
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("selling_price", sa.BigInteger(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_products_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_org_id", "products", ["org_id"])

    op.create_table(
        "currencies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=3), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("symbol", sa.String(length=8), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_currencies_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_currencies_org_id", "currencies", ["org_id"])

    op.create_table(
        "exchange_rates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("from_currency_id", sa.Integer(), nullable=False),
        sa.Column("to_currency_id", sa.Integer(), nullable=False),
        sa.Column("rate", sa.BigInteger(), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["from_currency_id"], ["currencies.id"]),
        sa.ForeignKeyConstraint(["to_currency_id"], ["currencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "org_id", "from_currency_id", "to_currency_id", "effective_date",
            name="uq_exchange_rates_pair_date",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_exchange_rates_org_id", "exchange_rates", ["org_id"])

    op.create_table(
        "financial_periods",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "name", name="uq_financial_periods_org_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_financial_periods_org_id", "financial_periods", ["org_id"])

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("account_type", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_accounts_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_accounts_org_id", "accounts", ["org_id"])

    # Inventory
    op.create_table(
        "inventory_positions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.BigInteger(), nullable=False),
        sa.Column("average_cost", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "product_id", "store_id", name="uq_positions_org_product_store"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_positions_org_id", "inventory_positions", ["org_id"])
    op.create_index("ix_inventory_positions_product_id", "inventory_positions", ["product_id"])
    op.create_index("ix_inventory_positions_store_id", "inventory_positions", ["store_id"])

    # Adjustments
    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("reference_number", sa.String(length=50), nullable=False),
        sa.Column("adjustment_date", sa.Date(), nullable=False),
        sa.Column("adjustment_type", sa.String(length=8), nullable=False),
        sa.Column("reason_code", sa.String(length=50), nullable=True),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("corresponding_account_id", sa.Integer(), nullable=False),
        sa.Column("currency_id", sa.Integer(), nullable=False),
        sa.Column("exchange_rate", sa.BigInteger(), nullable=False),
        sa.Column("document_type", sa.String(length=50), nullable=True),
        sa.Column("document_number", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False),
        sa.Column("total_value", sa.BigInteger(), nullable=False),
        sa.Column("equivalent_amount", sa.BigInteger(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("submitted_by_user_id", sa.Integer(), nullable=True),
        sa.Column("approved_by_user_id", sa.Integer(), nullable=True),
        sa.Column("rejected_by_user_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["corresponding_account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["currency_id"], ["currencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "reference_number", name="uq_stock_adjustments_org_reference"),
        sa.CheckConstraint("adjustment_type IN ('add', 'deduct')", name="ck_stock_adjustments_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_adjustments_org_id", "stock_adjustments", ["org_id"])
    op.create_index("ix_stock_adjustments_store_id", "stock_adjustments", ["store_id"])
    op.create_index("ix_stock_adjustments_status", "stock_adjustments", ["status"])
    op.create_index("ix_stock_adjustments_org_status", "stock_adjustments", ["org_id", "status"])

    op.create_table(
        "stock_adjustment_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("adjustment_id", sa.Integer(), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("current_quantity", sa.BigInteger(), nullable=False),
        sa.Column("adjusted_quantity", sa.BigInteger(), nullable=False),
        sa.Column("new_quantity", sa.BigInteger(), nullable=False),
        sa.Column("unit_cost", sa.BigInteger(), nullable=False),
        sa.Column("line_value", sa.BigInteger(), nullable=False),
        sa.Column("batch_number", sa.String(length=100), nullable=True),
        sa.Column("serial_numbers", sa.JSON(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["adjustment_id"], ["stock_adjustments.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("adjustment_id", "line_number", name="uq_adjustment_lines_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_adjustment_lines_org_id", "stock_adjustment_lines", ["org_id"])
    op.create_index("ix_stock_adjustment_lines_adjustment_id", "stock_adjustment_lines", ["adjustment_id"])
    op.create_index("ix_stock_adjustment_lines_product_id", "stock_adjustment_lines", ["product_id"])

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_org_id", "document_sequences", ["org_id"])
    op.create_index("ix_document_sequences_document_type", "document_sequences", ["document_type"])

    # Posting outputs
    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("financial_period_id", sa.Integer(), nullable=False),
        sa.Column("source_type", sa.String(length=32), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("source_line_id", sa.Integer(), nullable=True),
        sa.Column("reference_number", sa.String(length=50), nullable=False),
        sa.Column("quantity_in", sa.BigInteger(), nullable=False),
        sa.Column("quantity_out", sa.BigInteger(), nullable=False),
        sa.Column("quantity_after", sa.BigInteger(), nullable=False),
        sa.Column("unit_cost", sa.BigInteger(), nullable=False),
        sa.Column("average_cost_after", sa.BigInteger(), nullable=False),
        sa.Column("currency_id", sa.Integer(), nullable=False),
        sa.Column("system_currency_id", sa.Integer(), nullable=False),
        sa.Column("exchange_rate", sa.BigInteger(), nullable=False),
        sa.Column("equivalent_amount", sa.BigInteger(), nullable=False),
        sa.Column("batch_number", sa.String(length=100), nullable=True),
        sa.Column("serial_numbers", sa.JSON(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["financial_period_id"], ["financial_periods.id"]),
        sa.ForeignKeyConstraint(["currency_id"], ["currencies.id"]),
        sa.ForeignKeyConstraint(["system_currency_id"], ["currencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_movements_org_id", "stock_movements", ["org_id"])
    op.create_index("ix_stock_movements_source_id", "stock_movements", ["source_id"])
    op.create_index("ix_stock_movements_reference_number", "stock_movements", ["reference_number"])
    op.create_index("ix_stock_movements_org_product_store", "stock_movements", ["org_id", "product_id", "store_id"])

    op.create_table(
        "stock_lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("lot_key", sa.String(length=255), nullable=False),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("batch_number", sa.String(length=100), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("current_quantity", sa.BigInteger(), nullable=False),
        sa.Column("total_received", sa.BigInteger(), nullable=False),
        sa.Column("total_issued", sa.BigInteger(), nullable=False),
        sa.Column("total_adjusted", sa.BigInteger(), nullable=False),
        sa.Column("unit_cost", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("last_reference_number", sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "product_id", "store_id", "lot_key", name="uq_stock_lots_key"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_lots_org_id", "stock_lots", ["org_id"])
    op.create_index("ix_stock_lots_product_id", "stock_lots", ["product_id"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("financial_period_id", sa.Integer(), nullable=False),
        sa.Column("financial_period_name", sa.String(length=64), nullable=False),
        sa.Column("transaction_type", sa.String(length=32), nullable=False),
        sa.Column("reference_number", sa.String(length=50), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("source_line_id", sa.Integer(), nullable=True),
        sa.Column("pair_key", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("account_code", sa.String(length=32), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=False),
        sa.Column("account_type", sa.String(length=16), nullable=False),
        sa.Column("side", sa.String(length=6), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("original_amount", sa.BigInteger(), nullable=False),
        sa.Column("currency_id", sa.Integer(), nullable=False),
        sa.Column("system_currency_id", sa.Integer(), nullable=False),
        sa.Column("exchange_rate", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["financial_period_id"], ["financial_periods.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.ForeignKeyConstraint(["currency_id"], ["currencies.id"]),
        sa.ForeignKeyConstraint(["system_currency_id"], ["currencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("side IN ('debit', 'credit')", name="ck_ledger_entries_side"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_ledger_entries_org_id", "ledger_entries", ["org_id"])
    op.create_index("ix_ledger_entries_financial_period_id", "ledger_entries", ["financial_period_id"])
    op.create_index("ix_ledger_entries_pair_key", "ledger_entries", ["pair_key"])
    op.create_index("ix_ledger_entries_org_reference", "ledger_entries", ["org_id", "reference_number"])

    op.create_table(
        "price_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("entity_code", sa.String(length=64), nullable=True),
        sa.Column("entity_name", sa.String(length=255), nullable=True),
        sa.Column("store_id", sa.Integer(), nullable=True),
        sa.Column("module_name", sa.String(length=100), nullable=False),
        sa.Column("costing_method", sa.String(length=8), nullable=False),
        sa.Column("reason_code", sa.String(length=50), nullable=True),
        sa.Column("old_average_cost", sa.BigInteger(), nullable=True),
        sa.Column("new_average_cost", sa.BigInteger(), nullable=True),
        sa.Column("old_selling_price", sa.BigInteger(), nullable=True),
        sa.Column("new_selling_price", sa.BigInteger(), nullable=True),
        sa.Column("quantity", sa.BigInteger(), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=True),
        sa.Column("currency_id", sa.Integer(), nullable=True),
        sa.Column("system_currency_id", sa.Integer(), nullable=True),
        sa.Column("exchange_rate", sa.BigInteger(), nullable=False),
        sa.Column("equivalent_amount", sa.BigInteger(), nullable=True),
        sa.Column("reference_number", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("change_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["currency_id"], ["currencies.id"]),
        sa.ForeignKeyConstraint(["system_currency_id"], ["currencies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_price_history_org_id", "price_history", ["org_id"])
    op.create_index("ix_price_history_reference_number", "price_history", ["reference_number"])
    op.create_index("ix_price_history_org_entity", "price_history", ["org_id", "entity_type", "entity_id", "change_date"])
    op.create_index("ix_price_history_org_module", "price_history", ["org_id", "module_name"])


def downgrade():
    for table in (
        "price_history",
        "ledger_entries",
        "stock_lots",
        "stock_movements",
        "document_sequences",
        "stock_adjustment_lines",
        "stock_adjustments",
        "inventory_positions",
        "accounts",
        "financial_periods",
        "exchange_rates",
        "currencies",
        "products",
        "stores",
        "organizations",
    ):
        op.drop_table(table)
