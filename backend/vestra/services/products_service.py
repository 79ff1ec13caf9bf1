# backend/vestra/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: Products, colors and sizes all belong to one organization.

A product is created either simple (no variants) or variant-bearing
(color x size combinations). The shape is fixed at creation: adding a
variant to a product that already has simple stock rows is refused, so the
ledger never mixes both kinds of rows for one product.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, ProductVariant, Color, Size, InventoryItem
from ..models.inventory import PRODUCT_STATUSES
from ..validation import ValidationError, ConflictError, parse_price_cents
from .concurrency import run_with_retry
from .tenant_service import require_product_in_org


def get_or_create_color(org_id: int, name: str) -> Color:
    color = db.session.query(Color).filter_by(org_id=org_id, name=name).first()
    if color is None:
        color = Color(org_id=org_id, name=name)
        db.session.add(color)
        db.session.flush()
    return color


def get_or_create_size(org_id: int, name: str, sort_order: int = 0) -> Size:
    size = db.session.query(Size).filter_by(org_id=org_id, name=name).first()
    if size is None:
        size = Size(org_id=org_id, name=name, sort_order=sort_order)
        db.session.add(size)
        db.session.flush()
    return size


def create_product(
    org_id: int,
    name: str,
    base_price_cents: int,
    *,
    sku: str | None = None,
    description: str | None = None,
    cost_price_cents: int | None = None,
    status: str = "active",
    variants: list[tuple[str | None, str | None]] | None = None,
) -> Product:
    """
    Create a product, optionally with variants given as (color, size) names.
    """
    if not name or not name.strip():
        raise ValidationError("Nome do produto é obrigatório.")
    if status not in PRODUCT_STATUSES:
        raise ValidationError("Status de produto inválido.", details={"allowed": list(PRODUCT_STATUSES)})
    price = parse_price_cents(base_price_cents, "base_price_cents")
    cost = parse_price_cents(cost_price_cents, "cost_price_cents") if cost_price_cents is not None else None

    def _op():
        product = Product(
            org_id=org_id,
            name=name.strip(),
            sku=sku,
            description=description,
            base_price_cents=price,
            cost_price_cents=cost,
            status=status,
        )
        db.session.add(product)
        db.session.flush()

        for index, (color_name, size_name) in enumerate(variants or []):
            _add_variant(product, color_name, size_name, sort_order=index)

        db.session.commit()
        current_app.logger.info(
            "Product %s created in org %s with %s variant(s)", product.id, org_id, len(variants or []),
        )
        return product

    return run_with_retry(_op)


def add_variant(org_id: int, product_id: int, color_name: str | None, size_name: str | None) -> ProductVariant:
    def _op():
        product = require_product_in_org(product_id, org_id)
        has_simple_rows = (
            db.session.query(InventoryItem.id)
            .filter(InventoryItem.product_id == product.id, InventoryItem.variant_id.is_(None))
            .first()
        )
        if has_simple_rows:
            raise ConflictError("Produto já possui estoque sem variantes.")
        variant = _add_variant(product, color_name, size_name)
        db.session.commit()
        return variant

    return run_with_retry(_op)


def _add_variant(product: Product, color_name: str | None, size_name: str | None, sort_order: int = 0) -> ProductVariant:
    if not color_name and not size_name:
        raise ValidationError("Variante precisa de cor ou tamanho.")
    color = get_or_create_color(product.org_id, color_name) if color_name else None
    size = get_or_create_size(product.org_id, size_name, sort_order) if size_name else None
    variant = ProductVariant(
        product_id=product.id,
        color_id=color.id if color else None,
        size_id=size.id if size else None,
        sku=product.sku or "",
    )
    db.session.add(variant)
    db.session.flush()
    return variant
