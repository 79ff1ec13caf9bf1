# Overview: Read-only projections for receipts, closure reports, daily sales and stock overview.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from vestra.extensions import db
from vestra.models import (
    Sale,
    SaleItem,
    CashClosure,
    InventoryItem,
    Product,
    ProductVariant,
)
from vestra.validation import NotFoundError
from vestra.time_utils import utcnow, to_utc_z
from vestra.services.tenant_service import require_store_in_org
from vestra.services.cash_closure_service import store_day_bounds, get_cash_state


# Products whose summed stock is at or below this count as low stock
LOW_STOCK_THRESHOLD = 5

REPORT_FORBIDDEN_MESSAGE = "Apenas proprietários ou gerentes podem ver este relatório."


def item_display_name(item: SaleItem) -> str:
    """'Product (Color / Size)' for variant items, plain product name otherwise."""
    name = item.product.name if item.product else "Produto"
    label = item.variant.label if item.variant else ""
    return f"{name} ({label})" if label else name


def _sale_query(org_id: int):
    return db.session.query(Sale).filter(Sale.org_id == org_id).options(
        selectinload(Sale.items).selectinload(SaleItem.product),
        selectinload(Sale.items).selectinload(SaleItem.variant).selectinload(ProductVariant.color),
        selectinload(Sale.items).selectinload(SaleItem.variant).selectinload(ProductVariant.size),
        selectinload(Sale.seller),
        selectinload(Sale.client),
    )


def _sale_summary(sale: Sale) -> dict:
    return {
        "id": sale.id,
        "created_at": to_utc_z(sale.created_at),
        "payment_method": sale.payment_method,
        "channel": sale.channel,
        "total_cents": sale.total_cents,
        "seller_name": sale.seller.name if sale.seller else None,
        "client_name": sale.client.name if sale.client else None,
        "closure_id": sale.closure_id,
        "items": [
            {
                "name": item_display_name(item),
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in sale.items
        ],
    }


def get_sale_for_receipt(ctx, sale_id: int) -> dict:
    sale = _sale_query(ctx.org_id).filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFoundError("Venda não encontrada.")

    org = sale.store.organization
    return {
        "sale_id": sale.id,
        "organization": {
            "name": org.name if org else "Empresa",
            "document": org.document if org else None,
        },
        "store": {"name": sale.store.name if sale.store else "Loja"},
        "items": [
            {
                "name": item_display_name(item),
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in sale.items
        ],
        "subtotal_cents": sale.subtotal_cents,
        "interest_cents": sale.interest_cents,
        "surcharge_cents": sale.surcharge_cents,
        "total_cents": sale.total_cents,
        "payment_method": sale.payment_method,
        "created_at": to_utc_z(sale.created_at),
        "invoice_url": sale.invoice_url,
    }


def get_cash_closure_report(ctx, closure_id: int) -> dict:
    """
    Printable report of a closure: header plus every sale stamped with it,
    newest first.
    """
    ctx.require_cash_role(REPORT_FORBIDDEN_MESSAGE)

    closure = db.session.query(CashClosure).filter_by(id=closure_id, org_id=ctx.org_id).first()
    if closure is None:
        raise NotFoundError("Fechamento não encontrado.")

    sales = (
        _sale_query(ctx.org_id)
        .filter(Sale.closure_id == closure.id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )

    return {
        "closure": closure.to_dict(),
        "organization_name": closure.store.organization.name,
        "store_name": closure.store.name,
        "closed_by_name": closure.closer.name if closure.closer and closure.closer.name else "—",
        "sales": [_sale_summary(s) for s in sales],
    }


def get_daily_sales(ctx, store_id: int | None = None) -> dict:
    """Today's sales for a store (local day), with totals and cash state."""
    ctx.require_cash_role(REPORT_FORBIDDEN_MESSAGE)

    state = get_cash_state(ctx, store_id)
    store = require_store_in_org(state["store_id"], ctx.org_id)
    start, end = store_day_bounds(store, utcnow())

    sales = (
        _sale_query(ctx.org_id)
        .filter(Sale.store_id == store.id, Sale.created_at >= start, Sale.created_at <= end)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )

    return {
        "store_id": store.id,
        "sales": [_sale_summary(s) for s in sales],
        "count": len(sales),
        "total_cents": sum(s.total_cents for s in sales),
        "is_closed": state["is_closed"],
        "closure_id": state["closure_id"],
    }


def get_stock_overview(ctx) -> dict:
    """
    Organization-wide stock numbers:
    - active_products: products with status 'active'
    - total_units: units across every ledger row of the organization
    - low_stock_products: active products whose summed stock <= LOW_STOCK_THRESHOLD
    """
    active_products = (
        db.session.query(func.count(Product.id))
        .filter(Product.org_id == ctx.org_id, Product.status == "active")
        .scalar()
    ) or 0

    total_units = (
        db.session.query(func.coalesce(func.sum(InventoryItem.quantity), 0))
        .join(Product, InventoryItem.product_id == Product.id)
        .filter(Product.org_id == ctx.org_id)
        .scalar()
    ) or 0

    per_product = (
        db.session.query(Product.id, func.coalesce(func.sum(InventoryItem.quantity), 0))
        .outerjoin(InventoryItem, InventoryItem.product_id == Product.id)
        .filter(Product.org_id == ctx.org_id, Product.status == "active")
        .group_by(Product.id)
        .all()
    )
    low_stock = sum(1 for _, total in per_product if int(total) <= LOW_STOCK_THRESHOLD)

    return {
        "active_products": int(active_products),
        "total_units": int(total_units),
        "low_stock_products": low_stock,
        "low_stock_threshold": LOW_STOCK_THRESHOLD,
    }
