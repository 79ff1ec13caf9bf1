# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/vestra/routes/auth.py
"""
Authentication API routes

- POST /login issues a bearer token bound to (user, org, store)
- POST /logout revokes it
- GET /me echoes the session's tenant context
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.tenant_service import find_store_in_org
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: {email, password, org_slug?, store_id?}
    store_id selects the working store; it must belong to the user's org.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "Email e senha são obrigatórios."}), 400

        user = auth_service.authenticate(email, password, org_slug=data.get("org_slug"))

        if not user:
            current_app.logger.warning("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Credenciais inválidas."}), 401

        store_id = data.get("store_id")
        if store_id is not None:
            if not isinstance(store_id, int) or find_store_in_org(store_id, user.org_id) is None:
                return jsonify({"error": "Loja inválida."}), 400

        session, token = session_service.create_session(
            user_id=user.id,
            store_id=store_id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "org_id": session.org_id,
            "store_id": session.store_id,
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Erro interno do servidor."}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Cabeçalho Authorization obrigatório."}), 401

        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": "Token inválido ou expirado."}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Erro interno do servidor."}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    ctx = g.session_context
    return jsonify({
        "user": ctx.user.to_dict(),
        "org_id": ctx.org_id,
        "store_id": ctx.store_id,
        "role": ctx.role,
    }), 200
