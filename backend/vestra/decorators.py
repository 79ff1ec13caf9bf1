# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'session_context')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.org_id: The organization ID (tenant context)
    - g.store_id: The session's working store (may be None)
    - g.session_context: The SessionContext passed on to services

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired, idle or revoked token
    - User account or organization deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Autenticação necessária."}), 401

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Token inválido ou expirado."}), 401

        g.current_user = context.user
        g.org_id = context.org_id
        g.store_id = context.store_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require one of the given roles (owner, manager, seller).

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Autenticação necessária."}), 401

            context = g.session_context
            if context.role not in roles:
                current_app.logger.warning(
                    "Permission denied: user %s (role=%s) on %s %s",
                    context.user_id, context.role, request.method, request.path,
                )
                return jsonify({
                    "error": "Permissão negada.",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
