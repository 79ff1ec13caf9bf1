# backend/vestra/services/transfer_service.py
"""
Inter-store stock transfer.

WHY: Move units of one product (or variant) from one store of the
organization to another in a single step. The origin row is debited and the
destination row credited in the same transaction, so the organization-wide
total for that ledger key never changes.

There is no document lifecycle: a transfer either applies completely or
raises and leaves both rows untouched.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from vestra.extensions import db
from vestra.validation import ConflictError, parse_quantity
from vestra.services.concurrency import begin_write, run_with_retry
from vestra.services.inventory_service import (
    require_row,
    decrement,
    upsert_add,
    resolve_stock_key,
)
from vestra.services.tenant_service import require_store_in_org


@dataclass(frozen=True)
class TransferResult:
    from_quantity: int
    to_quantity: int

    def to_dict(self) -> dict:
        return {"from_quantity": self.from_quantity, "to_quantity": self.to_quantity}


def transfer_stock(
    ctx,
    product_id: int,
    variant_id: int | None,
    from_store_id: int,
    to_store_id: int,
    quantity,
) -> TransferResult:
    """
    Move quantity units between two stores of ctx's organization.

    Raises:
        ConflictError: origin and destination are the same store
        ValidationError: quantity is not a positive number
        NotFoundError: product, variant, store or origin row not in the org
        InsufficientStockError: origin holds fewer than quantity units
    """
    if from_store_id == to_store_id:
        raise ConflictError("Loja de origem e destino devem ser diferentes.")

    qty = parse_quantity(quantity)

    def _op():
        begin_write()

        require_store_in_org(from_store_id, ctx.org_id, "Loja de origem inválida.")
        require_store_in_org(to_store_id, ctx.org_id, "Loja de destino inválida.")
        product, variant = resolve_stock_key(ctx.org_id, product_id, variant_id)
        vid = variant.id if variant else None

        origin = require_row(
            from_store_id, product.id, vid,
            lock=True,
            message="Estoque não encontrado na loja de origem.",
        )
        decrement(origin, qty, message="Estoque insuficiente na loja de origem. Disponível: {available}.")
        destination = upsert_add(to_store_id, product.id, vid, qty)

        result = TransferResult(from_quantity=origin.quantity, to_quantity=destination.quantity)
        db.session.commit()

        current_app.logger.info(
            "Transfer of %s unit(s) of product %s (variant %s) from store %s to store %s by user %s",
            qty, product.id, vid, from_store_id, to_store_id, ctx.user_id,
        )
        return result

    return run_with_retry(_op)
