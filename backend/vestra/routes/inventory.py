# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/vestra/routes/inventory.py
"""Inventory API routes: stock reads, transfers, exchanges, returns and incoming receipts"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth
from ..validation import DomainError, parse_required_id, parse_optional_id
from ..services import (
    inventory_service,
    transfer_service,
    return_service,
    receive_service,
    reporting_service,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _error(e: DomainError):
    db.session.rollback()
    return jsonify({"error": str(e), "details": e.details}), e.status_code


@inventory_bp.get("/products/<int:product_id>/stock")
@require_auth
def product_stock_route(product_id: int):
    """Per-store stock of a product, shaped as 'simple' or 'variants'."""
    try:
        stock = inventory_service.get_product_stock(g.session_context, product_id)
        return jsonify(stock.to_dict()), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to read product stock")
        return jsonify({"error": "Erro interno do servidor."}), 500


@inventory_bp.post("/transfer")
@require_auth
def transfer_route():
    """
    Body: {product_id, variant_id?, from_store_id, to_store_id, quantity}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = transfer_service.transfer_stock(
            g.session_context,
            product_id=parse_required_id(data.get("product_id"), "product_id"),
            variant_id=parse_optional_id(data.get("variant_id"), "variant_id"),
            from_store_id=parse_required_id(data.get("from_store_id"), "from_store_id"),
            to_store_id=parse_required_id(data.get("to_store_id"), "to_store_id"),
            quantity=data.get("quantity"),
        )
        return jsonify(result.to_dict()), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Erro interno do servidor."}), 500


@inventory_bp.post("/exchange")
@require_auth
def exchange_route():
    """
    Body: {store_id?, product_id, variant_id?, quantity, kind}
    store_id defaults to the session's store.
    """
    try:
        data = request.get_json(silent=True) or {}
        ctx = g.session_context
        store_id = parse_optional_id(data.get("store_id"), "store_id") or ctx.store_id
        quantity = return_service.register_exchange_or_return(
            ctx,
            store_id=parse_required_id(store_id, "store_id"),
            product_id=parse_required_id(data.get("product_id"), "product_id"),
            variant_id=parse_optional_id(data.get("variant_id"), "variant_id"),
            quantity=data.get("quantity"),
            kind=data.get("kind", return_service.KIND_EXCHANGE),
        )
        return jsonify({"quantity": quantity}), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to register exchange")
        return jsonify({"error": "Erro interno do servidor."}), 500


@inventory_bp.post("/return")
@require_auth
def return_route():
    """Body: {store_id?, product_id, variant_id?, quantity}"""
    try:
        data = request.get_json(silent=True) or {}
        ctx = g.session_context
        store_id = parse_optional_id(data.get("store_id"), "store_id") or ctx.store_id
        quantity = return_service.register_return_add_stock(
            ctx,
            store_id=parse_required_id(store_id, "store_id"),
            product_id=parse_required_id(data.get("product_id"), "product_id"),
            variant_id=parse_optional_id(data.get("variant_id"), "variant_id"),
            quantity=data.get("quantity"),
        )
        return jsonify({"quantity": quantity}), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to register return")
        return jsonify({"error": "Erro interno do servidor."}), 500


@inventory_bp.post("/incoming")
@require_auth
def incoming_route():
    """Body: {product_id, variant_id?, entries: [{store_id, quantity}, ...]}"""
    try:
        data = request.get_json(silent=True) or {}
        applied = receive_service.add_incoming_stock(
            g.session_context,
            product_id=parse_required_id(data.get("product_id"), "product_id"),
            variant_id=parse_optional_id(data.get("variant_id"), "variant_id"),
            entries=data.get("entries") or [],
        )
        return jsonify({"applied": [e.to_dict() for e in applied]}), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to add incoming stock")
        return jsonify({"error": "Erro interno do servidor."}), 500


@inventory_bp.get("/overview")
@require_auth
def overview_route():
    try:
        return jsonify(reporting_service.get_stock_overview(g.session_context)), 200
    except Exception:
        current_app.logger.exception("Failed to build stock overview")
        return jsonify({"error": "Erro interno do servidor."}), 500
