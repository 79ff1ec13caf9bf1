from __future__ import annotations

from ..extensions import db
from vestra.time_utils import to_utc_z, utcnow


class CashClosure(db.Model):
    """
    Daily cash closure: an immutable per-store aggregate of the sales made
    between period_start (local midnight) and period_end (closing time).

    Every sale counted here carries closure_id = this id. A closure is never
    edited; reopening the cash deletes it and clears the stamp from its
    sales (cash_closure_service.reopen_cash).

    A store is "closed" for a day iff a closure with period_start equal to
    that day's start exists.
    """
    __tablename__ = "cash_closures"
    __table_args__ = (
        db.UniqueConstraint("store_id", "period_start", name="uq_cash_closures_store_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    closed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    period_start = db.Column(db.DateTime(timezone=True), nullable=False)
    period_end = db.Column(db.DateTime(timezone=True), nullable=False)

    total_cents = db.Column(db.Integer, nullable=False)
    sales_count = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    store = db.relationship("Store")
    closer = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "closed_by": self.closed_by,
            "period_start": to_utc_z(self.period_start),
            "period_end": to_utc_z(self.period_end),
            "total_cents": self.total_cents,
            "sales_count": self.sales_count,
            "created_at": to_utc_z(self.created_at),
        }
