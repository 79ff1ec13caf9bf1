from __future__ import annotations

from ..extensions import db
from vestra.time_utils import to_utc_z


class Client(db.Model):
    """
    Client (end customer) master data.

    MULTI-TENANT: Clients are scoped to organizations via org_id.
    The document (CPF/CNPJ, digits only) is unique within an organization.
    A sale may optionally reference one client of the same organization.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("org_id", "document", name="uq_clients_org_document"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    kind = db.Column(db.String(2), nullable=False, default="PF")  # PF (person), PJ (company)
    document = db.Column(db.String(18), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("clients", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "kind": self.kind,
            "document": self.document,
            "email": self.email,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }
