"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every operation is scoped to one organization (the tenant of the caller's
SessionContext). Any id arriving from client input must be resolved
through these helpers before it is used.

SECURITY INVARIANTS:
1. Every authenticated call carries ctx.org_id
2. Store/product/client ids from client input are validated against it
3. Foreign-tenant ids are reported exactly like missing ids, so existence
   in another organization is never revealed
4. Cross-tenant attempts are logged

USAGE:
    from vestra.services.tenant_service import require_store_in_org

    store = require_store_in_org(store_id, ctx.org_id)
"""

from flask import current_app

from ..extensions import db
from ..models import Store, Product, ProductVariant, Client
from ..validation import NotFoundError


class TenantAccessError(NotFoundError):
    """Raised when an id does not resolve inside the caller's organization."""


def require_store_in_org(store_id: int, org_id: int, message: str = "Loja inválida.") -> Store:
    """
    Validate that a store belongs to the specified organization.

    Raises TenantAccessError if the store doesn't exist or belongs to a
    different org.
    """
    store = db.session.query(Store).filter_by(id=store_id).first()

    if not store:
        raise TenantAccessError(message)

    if store.org_id != org_id:
        _log_cross_tenant_attempt(
            f"Store {store_id} belongs to org {store.org_id}, not {org_id}",
            org_id=org_id,
        )
        raise TenantAccessError(message)  # Don't reveal it exists in another org

    return store


def find_store_in_org(store_id: int, org_id: int) -> Store | None:
    """Like require_store_in_org, but returns None instead of raising."""
    store = db.session.query(Store).filter_by(id=store_id, org_id=org_id).first()
    if store is None:
        _log_cross_tenant_attempt(f"Store {store_id} not found in org {org_id}", org_id=org_id)
    return store


def require_product_in_org(product_id: int, org_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()

    if not product:
        raise TenantAccessError("Produto não encontrado.")

    if product.org_id != org_id:
        _log_cross_tenant_attempt(
            f"Product {product_id} belongs to org {product.org_id}, not {org_id}",
            org_id=org_id,
        )
        raise TenantAccessError("Produto não encontrado.")

    return product


def require_variant_of_product(variant_id: int, product: Product) -> ProductVariant:
    variant = db.session.query(ProductVariant).filter_by(id=variant_id, product_id=product.id).first()
    if not variant:
        raise TenantAccessError("Variante não encontrada para este produto.")
    return variant


def require_client_in_org(client_id: int, org_id: int) -> Client:
    client = db.session.query(Client).filter_by(id=client_id).first()

    if not client or client.org_id != org_id:
        if client:
            _log_cross_tenant_attempt(
                f"Client {client_id} belongs to org {client.org_id}, not {org_id}",
                org_id=org_id,
            )
        raise TenantAccessError("Cliente inválido.")

    return client


def get_org_stores(org_id: int) -> list[Store]:
    """
    Get all stores for an organization in creation order.

    The first entry is the organization's headquarters (see
    get_headquarters_store).
    """
    return (
        db.session.query(Store)
        .filter_by(org_id=org_id)
        .order_by(Store.created_at.asc(), Store.id.asc())
        .all()
    )


def get_headquarters_store(org_id: int) -> Store | None:
    """The headquarters is the first store created; None if there are no stores."""
    stores = get_org_stores(org_id)
    return stores[0] if stores else None


def _log_cross_tenant_attempt(reason: str, org_id: int | None = None) -> None:
    current_app.logger.warning("Cross-tenant access denied (org_id=%s): %s", org_id, reason)
