# Overview: Password hashing, user creation and credential checks.

"""
Authentication Service with Multi-Tenant Support

MULTI-TENANT: Users belong to exactly one organization (org_id).
Email uniqueness is tenant-scoped.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper/lower case, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Organization, Store
from ..models.auth import ROLES
from vestra.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if requirements not met."""
    if len(password) < 8:
        raise PasswordValidationError("A senha deve ter pelo menos 8 caracteres.")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("A senha deve conter ao menos uma letra maiúscula.")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("A senha deve conter ao menos uma letra minúscula.")

    if not re.search(r'\d', password):
        raise PasswordValidationError("A senha deve conter ao menos um dígito.")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("A senha deve conter ao menos um caractere especial.")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (validates strength first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    name: str,
    email: str,
    password: str,
    org_id: int,
    role: str = "seller",
    store_id: int | None = None
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If org doesn't exist, email is taken, role is unknown,
            or store doesn't belong to org
        PasswordValidationError: If password doesn't meet requirements
    """
    if role not in ROLES:
        raise ValueError(f"Papel desconhecido: {role}")

    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        raise ValueError("Organização não encontrada.")
    if not org.is_active:
        raise ValueError("Organização inativa.")

    email = email.strip().lower()
    existing = db.session.query(User).filter_by(org_id=org_id, email=email).first()
    if existing:
        raise ValueError("Email já cadastrado nesta organização.")

    if store_id is not None:
        store = db.session.query(Store).filter_by(id=store_id).first()
        if not store or store.org_id != org_id:
            raise ValueError("Loja não pertence a esta organização.")

    user = User(
        org_id=org_id,
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        store_id=store_id
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str, org_slug: str | None = None) -> User | None:
    """
    Authenticate user by email and password.

    When org_slug is given, the lookup is scoped to that organization.
    Returns the User on success (and stamps last_login_at), None otherwise.
    """
    query = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    )

    if org_slug is not None:
        query = query.join(Organization, Organization.id == User.org_id).filter(Organization.slug == org_slug)

    user = query.first()

    if not user:
        return None

    org = db.session.query(Organization).filter_by(id=user.org_id).first()
    if not org or not org.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
