"""
Sales Service - Atomic sale completion

WHY: A sale is recorded, its items written and the stock of every sold row
decremented in ONE transaction. Either all of it commits or none of it does;
a rejected sale never leaves a half-decremented ledger behind.

FLOW (complete_sale):
1. Validate input and compute money (no database writes yet)
2. BEGIN IMMEDIATE / lock rows: validate store, client, cash state
3. Aggregate the cart per ledger row, lock rows in ascending id order,
   check availability of the aggregated quantity
4. Insert Sale and SaleItems (cart order), decrement each row once
5. Commit, then hand the sale to the fiscal bridge (non-fatal)
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem, InventoryItem
from ..models.sales import PAYMENT_METHODS
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    InsufficientStockError,
    MAX_INTEREST_RATE_BPS,
    parse_quantity,
    parse_price_cents,
    parse_optional_int,
    parse_required_id,
    parse_optional_id,
)
from vestra.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .inventory_service import decrement, resolve_stock_key
from .tenant_service import require_store_in_org, require_client_in_org
from .cash_closure_service import find_closure_for_day
from .fiscal_service import emit_invoice, InvoiceOutcome, STATUS_ERROR


INSUFFICIENT_MESSAGE = "Estoque insuficiente. Disponível: {available}, solicitado: {requested}."
MISSING_ROW_MESSAGE = "Estoque não encontrado para um dos itens."


@dataclass(frozen=True)
class SaleItemInput:
    product_id: int
    variant_id: int | None
    quantity: int
    unit_price_cents: int

    @classmethod
    def from_dict(cls, raw: dict) -> "SaleItemInput":
        if not isinstance(raw, dict):
            raise ValidationError("Cada item deve ser um objeto.")
        return cls(
            product_id=parse_required_id(raw.get("product_id"), "product_id"),
            variant_id=parse_optional_id(raw.get("variant_id"), "variant_id"),
            quantity=parse_quantity(raw.get("quantity")),
            unit_price_cents=parse_price_cents(raw.get("unit_price_cents")),
        )

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    interest_rate_bps: int
    interest_cents: int
    surcharge_cents: int

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.interest_cents + self.surcharge_cents


@dataclass(frozen=True)
class SaleResult:
    sale_id: int
    total_cents: int
    invoice: InvoiceOutcome | None = None

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "total_cents": self.total_cents,
            "invoice": self.invoice.to_dict() if self.invoice else None,
        }


def round_half_up_div(numerator: int, denominator: int) -> int:
    """Integer division rounding halves up (non-negative operands)."""
    return (numerator + denominator // 2) // denominator


def compute_totals(
    items: list[SaleItemInput],
    payment_method: str,
    interest_rate_bps=None,
    surcharge_cents=None,
) -> SaleTotals:
    """
    Money for a cart, in integer cents.

    Interest only applies to credit payments; other methods ignore the rate.
    A missing or negative surcharge counts as zero.
    """
    subtotal = sum(item.line_total_cents for item in items)

    rate = 0
    if payment_method == "credit":
        rate = parse_optional_int(interest_rate_bps, "interest_rate_bps") or 0
        if rate < 0 or rate > MAX_INTEREST_RATE_BPS:
            raise ValidationError("Percentual de juros inválido (0% a 100%).")

    surcharge = parse_optional_int(surcharge_cents, "surcharge_cents") or 0
    if surcharge < 0:
        surcharge = 0

    return SaleTotals(
        subtotal_cents=subtotal,
        interest_rate_bps=rate,
        interest_cents=round_half_up_div(subtotal * rate, 10_000),
        surcharge_cents=surcharge,
    )


def _normalize_items(items) -> list[SaleItemInput]:
    if not items:
        raise ValidationError("Nenhum item na venda.")
    normalized = []
    for raw in items:
        if isinstance(raw, SaleItemInput):
            # Re-validate values built in-process
            parse_quantity(raw.quantity)
            parse_price_cents(raw.unit_price_cents)
            normalized.append(raw)
        else:
            normalized.append(SaleItemInput.from_dict(raw))
    return normalized


def _lock_cart_rows(store_id: int, keys: dict[tuple, int]) -> dict[tuple, InventoryItem]:
    """
    Resolve each (product_id, variant_id) key to its ledger row and lock the
    distinct rows in ascending id order.
    """
    row_ids: dict[tuple, int] = {}
    for product_id, variant_id in keys:
        query = db.session.query(InventoryItem.id).filter(InventoryItem.store_id == store_id)
        if variant_id is not None:
            query = query.filter(InventoryItem.variant_id == variant_id)
        else:
            query = query.filter(InventoryItem.product_id == product_id, InventoryItem.variant_id.is_(None))
        found = query.first()
        if found is None:
            raise NotFoundError(MISSING_ROW_MESSAGE, details={"product_id": product_id, "variant_id": variant_id})
        row_ids[(product_id, variant_id)] = found[0]

    locked = lock_for_update(
        db.session.query(InventoryItem)
        .filter(InventoryItem.id.in_(sorted(set(row_ids.values()))))
        .order_by(InventoryItem.id.asc())
    ).all()
    by_id = {row.id: row for row in locked}
    return {key: by_id[row_id] for key, row_id in row_ids.items()}


def complete_sale(
    ctx,
    store_id: int,
    payment_method: str,
    items,
    client_id: int | None = None,
    interest_rate_bps=None,
    surcharge_cents=None,
    is_ecommerce: bool = False,
    *,
    fiscal_provider=None,
) -> SaleResult:
    """
    Record a sale and decrement stock atomically.

    Raises:
        ValidationError: empty cart, bad quantity/price/payment/interest
        NotFoundError: store, client, product, variant or stock row unknown
        ConflictError: today's cash for the store is already closed
        InsufficientStockError: a row holds less than the aggregated quantity
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Forma de pagamento inválida.", details={"allowed": list(PAYMENT_METHODS)})

    cart = _normalize_items(items)
    totals = compute_totals(cart, payment_method, interest_rate_bps, surcharge_cents)

    def _op():
        begin_write()

        store = require_store_in_org(store_id, ctx.org_id)
        if client_id is not None:
            require_client_in_org(client_id, ctx.org_id)

        now = utcnow()
        if not is_ecommerce and find_closure_for_day(store, now) is not None:
            raise ConflictError(
                "O caixa do dia já foi fechado. Reabra o caixa para realizar novas vendas.",
                details={"store_id": store.id},
            )

        # Aggregate per ledger key so a product listed twice is checked once
        requested: dict[tuple, int] = {}
        for item in cart:
            product, variant = resolve_stock_key(ctx.org_id, item.product_id, item.variant_id)
            key = (product.id, variant.id if variant else None)
            requested[key] = requested.get(key, 0) + item.quantity

        rows = _lock_cart_rows(store.id, requested)
        for key, qty in requested.items():
            available = rows[key].quantity or 0
            if available < qty:
                raise InsufficientStockError(
                    INSUFFICIENT_MESSAGE.format(available=available, requested=qty),
                    requested=qty,
                    available=available,
                    details={"product_id": key[0], "variant_id": key[1]},
                )

        sale = Sale(
            org_id=ctx.org_id,
            store_id=store.id,
            seller_id=ctx.user_id,
            client_id=client_id,
            payment_method=payment_method,
            channel="ecommerce" if is_ecommerce else "store",
            subtotal_cents=totals.subtotal_cents,
            interest_rate_bps=totals.interest_rate_bps,
            interest_cents=totals.interest_cents,
            surcharge_cents=totals.surcharge_cents,
            total_cents=totals.total_cents,
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        for position, item in enumerate(cart, start=1):
            db.session.add(SaleItem(
                sale_id=sale.id,
                position=position,
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=item.line_total_cents,
            ))

        for key, qty in requested.items():
            decrement(rows[key], qty, message=INSUFFICIENT_MESSAGE)

        db.session.commit()

        current_app.logger.info(
            "Sale %s completed at store %s by user %s: %s item(s), total %s cents (%s)",
            sale.id, store.id, ctx.user_id, len(cart), sale.total_cents, payment_method,
        )
        return sale.id, sale.total_cents

    sale_id, total_cents = run_with_retry(_op)

    try:
        invoice = emit_invoice(ctx, sale_id, provider=fiscal_provider)
    except Exception:
        # The sale is committed; a fiscal failure only affects the invoice
        current_app.logger.exception("Fiscal emission failed for sale %s", sale_id)
        db.session.rollback()
        invoice = InvoiceOutcome(status=STATUS_ERROR, message="Falha na emissão fiscal.")

    return SaleResult(sale_id=sale_id, total_cents=total_cents, invoice=invoice)
