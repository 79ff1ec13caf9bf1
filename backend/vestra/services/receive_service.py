# Overview: Incoming stock receipts spread over one or more stores.

"""
Incoming Stock Service

WHY: Goods arrive and are distributed across stores in one step. Each entry
names a store and a quantity; all accepted entries are credited in a single
transaction.

RULES:
- Entries with a non-positive quantity are dropped before anything else.
- If nothing remains the receipt is rejected.
- Entries pointing at a store outside the organization are skipped and
  logged; the rest still apply.
"""

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..validation import ValidationError, parse_optional_int, parse_optional_id
from .concurrency import begin_write, run_with_retry
from .inventory_service import upsert_add, resolve_stock_key
from .tenant_service import find_store_in_org


@dataclass(frozen=True)
class IncomingEntry:
    store_id: int
    quantity: int

    def to_dict(self) -> dict:
        return {"store_id": self.store_id, "quantity": self.quantity}


def normalize_entries(entries) -> list[IncomingEntry]:
    """Parse raw {store_id, quantity} entries, dropping non-positive quantities."""
    if not isinstance(entries, (list, tuple)):
        raise ValidationError("entries deve ser uma lista.")

    normalized = []
    for raw in entries:
        if isinstance(raw, IncomingEntry):
            entry = raw
        elif isinstance(raw, dict):
            store_id = parse_optional_id(raw.get("store_id"), "store_id")
            quantity = parse_optional_int(raw.get("quantity"), "quantity")
            if store_id is None or quantity is None:
                continue
            entry = IncomingEntry(store_id=store_id, quantity=quantity)
        else:
            raise ValidationError("Cada entrada deve ser um objeto com store_id e quantity.")

        if entry.quantity > 0:
            normalized.append(entry)
    return normalized


def add_incoming_stock(ctx, product_id: int, variant_id: int | None, entries) -> list[IncomingEntry]:
    """
    Credit incoming units to each listed store.

    Returns the entries actually applied (foreign/unknown stores excluded).
    """
    positive = normalize_entries(entries)
    if not positive:
        raise ValidationError("Informe ao menos uma quantidade.")

    def _op():
        begin_write()

        product, variant = resolve_stock_key(ctx.org_id, product_id, variant_id)
        vid = variant.id if variant else None

        applied = []
        for entry in positive:
            if find_store_in_org(entry.store_id, ctx.org_id) is None:
                current_app.logger.warning(
                    "Incoming stock entry skipped: store %s is not in org %s",
                    entry.store_id, ctx.org_id,
                )
                continue
            upsert_add(entry.store_id, product.id, vid, entry.quantity)
            applied.append(entry)

        db.session.commit()

        current_app.logger.info(
            "Incoming stock for product %s (variant %s): %s entr(ies) applied, %s skipped",
            product.id, vid, len(applied), len(positive) - len(applied),
        )
        return applied

    return run_with_retry(_op)
