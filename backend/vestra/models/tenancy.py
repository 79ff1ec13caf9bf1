from __future__ import annotations

from ..extensions import db
from vestra.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    All stores, users, clients, products and sales belong to exactly one
    organization. No data may cross organization boundaries.

    DESIGN:
    - Organizations are the tenant boundary
    - Stores, products, clients and sales carry org_id directly
    - All queries must be scoped by org_id
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # CNPJ/CPF printed on receipts (optional)
    document = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "document": self.document,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Store(db.Model):
    """
    Store within an organization.

    HEADQUARTERS: the first store of an organization (ordered by created_at,
    then id) is its headquarters. This is positional, not a stored flag;
    see tenant_service.get_org_stores().
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_stores_org_name"),
        db.Index("ix_stores_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)

    # "Today" for cash closure is evaluated in this timezone
    timezone = db.Column(db.String(64), nullable=False, default="America/Sao_Paulo")

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
            "address": self.address,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }

class InvoiceSettings(db.Model):
    """
    Per-organization fiscal (NFC-e) configuration.

    Emission is attempted only when is_active is True. The certificate
    itself lives with the fiscal provider; only its id is kept here.
    """
    __tablename__ = "invoice_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, unique=True)

    is_active = db.Column(db.Boolean, nullable=False, default=False)
    environment = db.Column(db.String(16), nullable=False, default="homologation")  # homologation, production
    csc_id = db.Column(db.String(64), nullable=True)
    csc_token = db.Column(db.String(255), nullable=True)
    certificate_id = db.Column(db.String(128), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("invoice_settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "is_active": self.is_active,
            "environment": self.environment,
            "csc_id": self.csc_id,
            "certificate_id": self.certificate_id,
            "updated_at": to_utc_z(self.updated_at),
        }
