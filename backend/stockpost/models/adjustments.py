from __future__ import annotations

from ..extensions import db
from .types import Cost, Money, Quantity, Rate
from stockpost.time_utils import to_utc_z, to_iso_date
from stockpost.validation import decimal_str


# =============================================================================
# STOCK ADJUSTMENT (header)
# =============================================================================

class StockAdjustment(db.Model):
    """
    Stock adjustment document.

    LIFECYCLE:
    1. draft:     Created, lines may be replaced, header edited, or deleted
    2. submitted: Awaiting review (requires at least one line)
    3. approved:  Posted to inventory, price history and general ledger (terminal)
    4. rejected:  Closed with a reason (terminal)

    IMMUTABLE once approved or rejected. Reversing an approved adjustment means
    creating a new adjustment in the opposite direction.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.UniqueConstraint("org_id", "reference_number", name="uq_stock_adjustments_org_reference"),
        db.Index("ix_stock_adjustments_org_status", "org_id", "status"),
        db.CheckConstraint("adjustment_type IN ('add', 'deduct')", name="ck_stock_adjustments_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Human-readable, tenant-unique (e.g., "SA-001-000042")
    reference_number = db.Column(db.String(50), nullable=False)
    adjustment_date = db.Column(db.Date, nullable=False)
    adjustment_type = db.Column(db.String(8), nullable=False)
    reason_code = db.Column(db.String(50), nullable=True)

    # Primary ("in"/"out") account and its corresponding account
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    corresponding_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)

    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    exchange_rate = db.Column(Rate(), nullable=False, default=1)

    document_type = db.Column(db.String(50), nullable=True)
    document_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    total_items = db.Column(db.Integer, nullable=False, default=0)
    total_value = db.Column(Money(), nullable=False, default=0)
    equivalent_amount = db.Column(Money(), nullable=False, default=0)

    # Lifecycle user attribution
    created_by_user_id = db.Column(db.Integer, nullable=True)
    updated_by_user_id = db.Column(db.Integer, nullable=True)
    submitted_by_user_id = db.Column(db.Integer, nullable=True)
    approved_by_user_id = db.Column(db.Integer, nullable=True)
    rejected_by_user_id = db.Column(db.Integer, nullable=True)

    # Lifecycle timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    rejection_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    # Relationships
    store = db.relationship("Store")
    currency = db.relationship("Currency")
    account = db.relationship("Account", foreign_keys=[account_id])
    corresponding_account = db.relationship("Account", foreign_keys=[corresponding_account_id])
    lines = db.relationship(
        "StockAdjustmentLine",
        back_populates="adjustment",
        order_by="StockAdjustmentLine.line_number",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_stock_in(self) -> bool:
        return self.adjustment_type == "add"

    def __repr__(self) -> str:
        return f"<StockAdjustment id={self.id} ref={self.reference_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "reference_number": self.reference_number,
            "adjustment_date": to_iso_date(self.adjustment_date),
            "adjustment_type": self.adjustment_type,
            "reason_code": self.reason_code,
            "account_id": self.account_id,
            "corresponding_account_id": self.corresponding_account_id,
            "currency_id": self.currency_id,
            "exchange_rate": decimal_str(self.exchange_rate),
            "document_type": self.document_type,
            "document_number": self.document_number,
            "notes": self.notes,
            "status": self.status,
            "total_items": self.total_items,
            "total_value": decimal_str(self.total_value),
            "equivalent_amount": decimal_str(self.equivalent_amount),
            "created_by_user_id": self.created_by_user_id,
            "updated_by_user_id": self.updated_by_user_id,
            "submitted_by_user_id": self.submitted_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "rejected_by_user_id": self.rejected_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "submitted_at": to_utc_z(self.submitted_at),
            "approved_at": to_utc_z(self.approved_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class StockAdjustmentLine(db.Model):
    """
    Individual line items on a stock adjustment.

    Owned exclusively by its header; the whole set is deleted and recreated
    whenever a draft is edited. new_quantity is derived from current_quantity
    and adjusted_quantity, signed by the header's direction.
    """
    __tablename__ = "stock_adjustment_lines"
    __table_args__ = (
        db.UniqueConstraint("adjustment_id", "line_number", name="uq_adjustment_lines_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    current_quantity = db.Column(Quantity(), nullable=False, default=0)
    adjusted_quantity = db.Column(Quantity(), nullable=False)
    new_quantity = db.Column(Quantity(), nullable=False)
    unit_cost = db.Column(Cost(), nullable=False)
    line_value = db.Column(Money(), nullable=False)

    batch_number = db.Column(db.String(100), nullable=True)
    serial_numbers = db.Column(db.JSON, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    adjustment = db.relationship("StockAdjustment", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_id": self.adjustment_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "current_quantity": decimal_str(self.current_quantity),
            "adjusted_quantity": decimal_str(self.adjusted_quantity),
            "new_quantity": decimal_str(self.new_quantity),
            "unit_cost": decimal_str(self.unit_cost),
            "line_value": decimal_str(self.line_value),
            "batch_number": self.batch_number,
            "serial_numbers": self.serial_numbers or [],
            "expiry_date": to_iso_date(self.expiry_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-tenant document sequences.

    Prevents two concurrent drafts from being issued the same reference number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
