# Overview: Session tokens and the per-request tenant context.

"""
Session Token Management Service with Multi-Tenant Support

MULTI-TENANT: Sessions capture org_id and store_id at creation time.
validate_session() turns a bearer token into a SessionContext, which is
passed explicitly as the first argument to every service operation. No
service reads tenant context from globals.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User, Organization
from ..models.auth import CASH_ROLES
from ..validation import PermissionDeniedError
from vestra.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


@dataclass
class SessionContext:
    """
    Who is calling, on behalf of which tenant.

    org_id, store_id and role are copied from the session record (or the
    user, for in-process callers), so they stay fixed for the lifetime of
    the context.
    """
    user: User
    org_id: int
    store_id: int | None  # May be None for org-level users
    role: str
    session: SessionToken | None = None

    @property
    def user_id(self) -> int:
        return self.user.id

    def require_role(self, *roles: str, message: str | None = None) -> None:
        if self.role not in roles:
            raise PermissionDeniedError(message or "Permissão negada.", details={"required_roles": list(roles)})

    def require_cash_role(self, message: str) -> None:
        self.require_role(*CASH_ROLES, message=message)


def context_for_user(user: User, store_id: int | None = None) -> SessionContext:
    """Build a context for in-process callers (CLI, jobs, tests)."""
    return SessionContext(
        user=user,
        org_id=user.org_id,
        store_id=store_id if store_id is not None else user.store_id,
        role=user.role,
    )


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    store_id: int | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user with tenant context.

    store_id selects the working store for this session; it defaults to the
    user's default store. Returns (session_record, plaintext_token).

    Raises ValueError if the user or organization is not usable.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        raise ValueError("Usuário não encontrado.")

    org = db.session.query(Organization).filter_by(id=user.org_id).first()
    if not org or not org.is_active:
        raise ValueError("Organização inativa.")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        org_id=user.org_id,
        store_id=store_id if store_id is not None else user.store_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is invalid, expired, revoked, idle for too
    long, or its user/organization has been deactivated.

    Updates last_used_at on successful validation.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    org = session.organization
    if not org or not org.is_active:
        _revoke(session, "Organization deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        org_id=session.org_id,
        store_id=session.store_id,
        role=user.role,
        session=session,
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke session token. Returns False if no active session matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
