from __future__ import annotations

from ..extensions import db
from stockpost.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    All stores, products, currencies, accounts, adjustments, ledger rows and
    price history belong to exactly one organization. Every repository query
    filters on org_id; no data may cross organization boundaries.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

class Store(db.Model):
    """
    Store within an organization.

    Store names and codes are unique within an organization, not globally.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_stores_org_name"),
        db.UniqueConstraint("org_id", "code", name="uq_stores_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
