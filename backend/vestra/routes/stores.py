# Overview: Flask API routes for stores; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth
from ..services import store_service


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_auth
def list_stores_route():
    """Stores of the caller's organization; the first one is the headquarters."""
    try:
        stores = store_service.list_stores(g.session_context)
        return jsonify({"stores": stores, "count": len(stores)}), 200
    except Exception:
        current_app.logger.exception("Failed to list stores")
        return jsonify({"error": "Erro interno do servidor."}), 500
