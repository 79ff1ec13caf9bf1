from __future__ import annotations

import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

from vestra.extensions import db
from vestra.models import Organization, Store
from vestra.validation import ValidationError, ConflictError
from vestra.services.concurrency import run_with_retry
from vestra.services.tenant_service import get_org_stores


_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]{1,62}$")


def create_organization(name: str, slug: str, *, document: str | None = None, first_store_name: str = "Matriz") -> Organization:
    """
    Create a tenant together with its first store.

    The first store becomes the headquarters by position.
    """
    def _op():
        if not name or not name.strip():
            raise ValidationError("Nome da organização é obrigatório.")
        if not _SLUG_RE.match(slug or ""):
            raise ValidationError("Slug inválido (use letras minúsculas, números e hífens).")
        if db.session.query(Organization).filter_by(slug=slug).first():
            raise ConflictError("Já existe uma organização com este slug.")

        org = Organization(name=name.strip(), slug=slug, document=document, is_active=True)
        db.session.add(org)
        db.session.flush()

        db.session.add(Store(
            org_id=org.id,
            name=first_store_name,
            timezone=current_app.config["DEFAULT_STORE_TIMEZONE"],
        ))
        db.session.commit()
        current_app.logger.info("Organization %s created (slug=%s)", org.id, slug)
        return org

    return run_with_retry(_op)


def create_store(org_id: int, name: str, *, address: str | None = None, timezone: str | None = None) -> Store:
    def _op():
        if not name or len(name.strip()) < 2:
            raise ValidationError("Nome deve ter pelo menos 2 caracteres.")

        if db.session.query(Store).filter_by(org_id=org_id, name=name.strip()).first():
            raise ConflictError("Já existe uma loja com este nome.")

        tz_name = timezone or current_app.config["DEFAULT_STORE_TIMEZONE"]
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError("Fuso horário inválido.", details={"timezone": tz_name})

        store = Store(
            org_id=org_id,
            name=name.strip(),
            address=address,
            timezone=tz_name,
        )

        db.session.add(store)
        db.session.commit()
        return store

    return run_with_retry(_op)


def list_stores(ctx) -> list[dict]:
    """Stores of the caller's organization, headquarters first."""
    stores = get_org_stores(ctx.org_id)
    return [
        {**store.to_dict(), "is_headquarters": index == 0}
        for index, store in enumerate(stores)
    ]
