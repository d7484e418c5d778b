from __future__ import annotations

from ..extensions import db
from .types import Cost, Money, Quantity, Rate
from stockpost.time_utils import to_utc_z, to_iso_date
from stockpost.validation import decimal_str

class Product(db.Model):
    """
    Product master data (read-only from the adjustment engine's point of view).

    selling_price is carried so price history can snapshot old/new selling
    prices alongside cost changes.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_products_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(20), nullable=False, default="PCS")

    selling_price = db.Column(Money(), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "unit": self.unit,
            "selling_price": decimal_str(self.selling_price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

class InventoryPosition(db.Model):
    """
    Running quantity and weighted-average cost per (product, store, tenant).

    INVARIANTS:
    - Exactly one row per (org_id, product_id, store_id); created lazily on
      first stock-in and never deleted.
    - quantity is only changed through a single conditional UPDATE
      (quantity = quantity + delta) while the row is locked. Never via
      read-modify-write of a cached value.
    - average_cost changes only on stock-in.
    """
    __tablename__ = "inventory_positions"
    __table_args__ = (
        db.UniqueConstraint("org_id", "product_id", "store_id", name="uq_positions_org_product_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    quantity = db.Column(Quantity(), nullable=False, default=0)
    average_cost = db.Column(Cost(), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")
    store = db.relationship("Store")

    def __repr__(self) -> str:
        return (
            f"<InventoryPosition product_id={self.product_id} store_id={self.store_id} "
            f"quantity={self.quantity} average_cost={self.average_cost}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "quantity": decimal_str(self.quantity),
            "average_cost": decimal_str(self.average_cost),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class StockMovement(db.Model):
    """
    Append-only stock movement journal; one row per posted adjustment line.

    Written inside the approval transaction, never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_org_product_store", "org_id", "product_id", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    financial_period_id = db.Column(db.Integer, db.ForeignKey("financial_periods.id"), nullable=False)

    source_type = db.Column(db.String(32), nullable=False, default="STOCK_ADJUSTMENT")
    source_id = db.Column(db.Integer, nullable=False, index=True)
    source_line_id = db.Column(db.Integer, nullable=True)
    reference_number = db.Column(db.String(50), nullable=False, index=True)

    quantity_in = db.Column(Quantity(), nullable=False, default=0)
    quantity_out = db.Column(Quantity(), nullable=False, default=0)
    quantity_after = db.Column(Quantity(), nullable=False)
    unit_cost = db.Column(Cost(), nullable=False)
    average_cost_after = db.Column(Cost(), nullable=False)

    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    system_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    exchange_rate = db.Column(Rate(), nullable=False, default=1)
    equivalent_amount = db.Column(Money(), nullable=False)

    batch_number = db.Column(db.String(100), nullable=True)
    serial_numbers = db.Column(db.JSON, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    transaction_date = db.Column(db.Date, nullable=False)
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "financial_period_id": self.financial_period_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "source_line_id": self.source_line_id,
            "reference_number": self.reference_number,
            "quantity_in": decimal_str(self.quantity_in),
            "quantity_out": decimal_str(self.quantity_out),
            "quantity_after": decimal_str(self.quantity_after),
            "unit_cost": decimal_str(self.unit_cost),
            "average_cost_after": decimal_str(self.average_cost_after),
            "currency_id": self.currency_id,
            "system_currency_id": self.system_currency_id,
            "exchange_rate": decimal_str(self.exchange_rate),
            "equivalent_amount": decimal_str(self.equivalent_amount),
            "batch_number": self.batch_number,
            "serial_numbers": self.serial_numbers or [],
            "expiry_date": to_iso_date(self.expiry_date),
            "transaction_date": to_iso_date(self.transaction_date),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

class StockLot(db.Model):
    """
    On-hand quantity per serial number or per batch/expiry lot.

    lot_key identifies the lot within (org, product, store):
    "S:<serial>" for serial numbers, "B:<batch>|<expiry>" for batches.
    Updated in the approval transaction alongside the position; quantities
    are never clamped, so they reconcile with the movement journal.
    """
    __tablename__ = "stock_lots"
    __table_args__ = (
        db.UniqueConstraint("org_id", "product_id", "store_id", "lot_key", name="uq_stock_lots_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)

    lot_key = db.Column(db.String(255), nullable=False)
    serial_number = db.Column(db.String(100), nullable=True)
    batch_number = db.Column(db.String(100), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    current_quantity = db.Column(Quantity(), nullable=False, default=0)
    total_received = db.Column(Quantity(), nullable=False, default=0)
    total_issued = db.Column(Quantity(), nullable=False, default=0)
    total_adjusted = db.Column(Quantity(), nullable=False, default=0)
    unit_cost = db.Column(Cost(), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="active")
    last_reference_number = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<StockLot product_id={self.product_id} key={self.lot_key!r} quantity={self.current_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "serial_number": self.serial_number,
            "batch_number": self.batch_number,
            "expiry_date": to_iso_date(self.expiry_date),
            "current_quantity": decimal_str(self.current_quantity),
            "total_received": decimal_str(self.total_received),
            "total_issued": decimal_str(self.total_issued),
            "total_adjusted": decimal_str(self.total_adjusted),
            "unit_cost": decimal_str(self.unit_cost),
            "status": self.status,
            "last_reference_number": self.last_reference_number,
            "updated_at": to_utc_z(self.updated_at),
        }
