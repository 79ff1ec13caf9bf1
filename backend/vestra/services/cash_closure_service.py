# Overview: Daily cash closure and reopening per store.

"""
Cash Closure Service

STATE MACHINE (per store, per local calendar day):
    OPEN --close_daily_cash--> CLOSED --reopen_cash--> OPEN

A store is CLOSED for a day iff a CashClosure exists whose period_start is
that day's local midnight (stored UTC-naive). "Today" is computed in the
store's own timezone.

INVARIANTS:
- A closure's sales_count/total_cents are computed from exactly the sales it
  stamps, read under lock in the same transaction.
- Every sale of the store created today and not yet closed is stamped,
  whatever its channel.
- Reopening is the inverse of closing: the stamps are cleared and the
  closure row is deleted in one transaction.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import CashClosure, Sale, Store
from ..validation import ValidationError, NotFoundError, ConflictError
from vestra.time_utils import utcnow, local_day_bounds, to_utc_z
from .concurrency import begin_write, lock_for_update, run_with_retry
from .tenant_service import require_store_in_org


CLOSE_FORBIDDEN_MESSAGE = "Apenas proprietários ou gerentes podem fechar o caixa."
REOPEN_FORBIDDEN_MESSAGE = "Apenas proprietários ou gerentes podem reabrir o caixa."


def store_day_bounds(store: Store, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Local-day bounds for the store, as UTC-naive datetimes."""
    tz_name = store.timezone or current_app.config["DEFAULT_STORE_TIMEZONE"]
    return local_day_bounds(tz_name, now)


def find_closure_for_day(store: Store, now: datetime | None = None) -> CashClosure | None:
    """The closure covering the store's current local day, if any."""
    start, _ = store_day_bounds(store, now)
    return (
        db.session.query(CashClosure)
        .filter_by(store_id=store.id, period_start=start)
        .first()
    )


def _resolve_store_id(ctx, store_id: int | None) -> int:
    resolved = store_id if store_id is not None else ctx.store_id
    if resolved is None:
        raise ValidationError("Loja não informada.")
    return resolved


def close_daily_cash(ctx, store_id: int | None = None) -> CashClosure:
    """
    Close today's cash for a store.

    Raises:
        PermissionDeniedError: caller is not owner/manager
        ConflictError: already closed today, or no sales to close
    """
    ctx.require_cash_role(CLOSE_FORBIDDEN_MESSAGE)
    target_store_id = _resolve_store_id(ctx, store_id)

    def _op():
        begin_write()

        store = require_store_in_org(target_store_id, ctx.org_id)
        now = utcnow()
        start, _ = store_day_bounds(store, now)

        if find_closure_for_day(store, now) is not None:
            raise ConflictError("O caixa de hoje já foi fechado.", details={"store_id": store.id})

        sales = lock_for_update(
            db.session.query(Sale)
            .filter(
                Sale.org_id == ctx.org_id,
                Sale.store_id == store.id,
                Sale.closure_id.is_(None),
                Sale.created_at >= start,
                Sale.created_at <= now,
            )
            .order_by(Sale.id.asc())
        ).all()

        if not sales:
            raise ConflictError("Nenhuma venda para fechar hoje.", details={"store_id": store.id})

        closure = CashClosure(
            org_id=ctx.org_id,
            store_id=store.id,
            closed_by=ctx.user_id,
            period_start=start,
            period_end=now,
            total_cents=sum(s.total_cents for s in sales),
            sales_count=len(sales),
            created_at=now,
        )
        db.session.add(closure)
        db.session.flush()

        for sale in sales:
            sale.closure_id = closure.id

        db.session.commit()

        current_app.logger.info(
            "Cash closed for store %s: closure %s, %s sale(s), %s cents, by user %s",
            store.id, closure.id, closure.sales_count, closure.total_cents, ctx.user_id,
        )
        return closure

    return run_with_retry(_op)


def reopen_cash(ctx, closure_id: int) -> dict:
    """
    Undo a closure: un-stamp its sales and delete it.

    Returns {"closure_id", "store_id", "reopened_sales"}.
    """
    ctx.require_cash_role(REOPEN_FORBIDDEN_MESSAGE)

    def _op():
        begin_write()

        closure = lock_for_update(
            db.session.query(CashClosure).filter_by(id=closure_id, org_id=ctx.org_id)
        ).first()
        if closure is None:
            raise NotFoundError("Fechamento não encontrado.")

        store_id = closure.store_id
        result = db.session.execute(
            update(Sale)
            .where(Sale.closure_id == closure.id)
            .values(closure_id=None)
            .execution_options(synchronize_session=False)
        )
        reopened = result.rowcount

        db.session.delete(closure)
        db.session.commit()
        # Sales loaded earlier in this session still hold the old stamp
        db.session.expire_all()

        current_app.logger.info(
            "Cash reopened for store %s: closure %s removed, %s sale(s) released, by user %s",
            store_id, closure_id, reopened, ctx.user_id,
        )
        return {"closure_id": closure_id, "store_id": store_id, "reopened_sales": reopened}

    return run_with_retry(_op)


def get_cash_state(ctx, store_id: int | None = None) -> dict:
    """Derived OPEN/CLOSED state of today's cash for a store."""
    store = require_store_in_org(_resolve_store_id(ctx, store_id), ctx.org_id)
    now = utcnow()
    start, _ = store_day_bounds(store, now)
    closure = find_closure_for_day(store, now)
    return {
        "store_id": store.id,
        "is_closed": closure is not None,
        "closure_id": closure.id if closure else None,
        "period_start": to_utc_z(start),
    }
