# Overview: Flask API routes for cash closures; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_role
from ..models.auth import CASH_ROLES
from ..validation import DomainError, parse_optional_id
from ..services import cash_closure_service, reporting_service


cash_closures_bp = Blueprint("cash_closures", __name__, url_prefix="/api/cash-closures")


def _error(e: DomainError):
    db.session.rollback()
    return jsonify({"error": str(e), "details": e.details}), e.status_code


@cash_closures_bp.post("")
@require_auth
@require_role(*CASH_ROLES)
def close_cash_route():
    """Close today's cash. Body: {store_id?} (defaults to the session's store)."""
    try:
        data = request.get_json(silent=True) or {}
        closure = cash_closure_service.close_daily_cash(
            g.session_context,
            store_id=parse_optional_id(data.get("store_id"), "store_id"),
        )
        return jsonify({"closure": closure.to_dict()}), 201
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to close cash")
        return jsonify({"error": "Erro interno do servidor."}), 500


@cash_closures_bp.get("/status")
@require_auth
def cash_status_route():
    try:
        store_id = parse_optional_id(request.args.get("store_id"), "store_id")
        return jsonify(cash_closure_service.get_cash_state(g.session_context, store_id)), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to read cash state")
        return jsonify({"error": "Erro interno do servidor."}), 500


@cash_closures_bp.post("/<int:closure_id>/reopen")
@require_auth
@require_role(*CASH_ROLES)
def reopen_cash_route(closure_id: int):
    try:
        return jsonify(cash_closure_service.reopen_cash(g.session_context, closure_id)), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to reopen cash")
        return jsonify({"error": "Erro interno do servidor."}), 500


@cash_closures_bp.get("/<int:closure_id>/report")
@require_auth
@require_role(*CASH_ROLES)
def closure_report_route(closure_id: int):
    try:
        return jsonify(reporting_service.get_cash_closure_report(g.session_context, closure_id)), 200
    except DomainError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to build closure report")
        return jsonify({"error": "Erro interno do servidor."}), 500
