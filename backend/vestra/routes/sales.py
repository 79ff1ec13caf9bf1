# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/vestra/routes/sales.py
"""Sales API routes: checkout, receipts, invoice re-emission and daily listing"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_role
from ..models.auth import CASH_ROLES
from ..validation import DomainError, ValidationError, parse_required_id, parse_optional_id, parse_optional_bool
from ..services import sales_service, reporting_service, fiscal_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error(e: DomainError):
    db.session.rollback()
    return jsonify({"error": str(e), "details": e.details}), e.status_code


@sales_bp.post("")
@require_auth
def complete_sale_route():
    """
    Complete a sale.

    Body: {
        store_id?, payment_method, items: [{product_id, variant_id?, quantity, unit_price_cents}],
        client_id?, interest_rate_bps?, surcharge_cents?, is_ecommerce?
    }
    store_id defaults to the session's store.
    """
    try:
        data = request.get_json(silent=True) or {}
        ctx = g.session_context

        items = data.get("items")
        if not isinstance(items, list):
            raise ValidationError("items deve ser uma lista.")

        store_id = parse_optional_id(data.get("store_id"), "store_id") or ctx.store_id

        result = sales_service.complete_sale(
            ctx,
            store_id=parse_required_id(store_id, "store_id"),
            payment_method=data.get("payment_method"),
            items=items,
            client_id=parse_optional_id(data.get("client_id"), "client_id"),
            interest_rate_bps=data.get("interest_rate_bps"),
            surcharge_cents=data.get("surcharge_cents"),
            is_ecommerce=parse_optional_bool(data.get("is_ecommerce"), "is_ecommerce"),
        )
        return jsonify({**result.to_dict(), "message": "Venda concluída!"}), 201

    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to complete sale")
        return jsonify({"error": "Erro interno do servidor."}), 500


@sales_bp.get("/<int:sale_id>/receipt")
@require_auth
def receipt_route(sale_id: int):
    try:
        return jsonify(reporting_service.get_sale_for_receipt(g.session_context, sale_id)), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to build receipt")
        return jsonify({"error": "Erro interno do servidor."}), 500


@sales_bp.post("/<int:sale_id>/invoice")
@require_auth
def emit_invoice_route(sale_id: int):
    """(Re-)emit the NFC-e of a sale. Provider failures come back as an outcome, not an HTTP error."""
    try:
        outcome = fiscal_service.emit_invoice(g.session_context, sale_id)
        return jsonify(outcome.to_dict()), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to emit invoice")
        return jsonify({"error": "Erro interno do servidor."}), 500


@sales_bp.get("/daily")
@require_auth
@require_role(*CASH_ROLES)
def daily_sales_route():
    """Today's sales for ?store_id= (defaults to the session's store)."""
    try:
        store_id = parse_optional_id(request.args.get("store_id"), "store_id")
        return jsonify(reporting_service.get_daily_sales(g.session_context, store_id)), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list daily sales")
        return jsonify({"error": "Erro interno do servidor."}), 500
