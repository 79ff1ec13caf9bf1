# Overview: Pytest coverage for atomic sale completion.

"""
Sale Transaction Tests

Verifies:
- Stock is decremented exactly by what was sold
- A rejected sale leaves no sale, no items and no stock change
- Money: total = subtotal + interest + surcharge, interest only for credit
- Duplicate cart lines for the same row are checked in aggregate
- Sales are refused once today's cash is closed (except e-commerce)
"""

from datetime import timedelta

import pytest

from vestra.models import Sale, SaleItem, CashClosure
from vestra.services.sales_service import (
    complete_sale,
    compute_totals,
    round_half_up_div,
    SaleItemInput,
)
from vestra.services.cash_closure_service import store_day_bounds
from vestra.services.inventory_service import upsert_add
from vestra.time_utils import utcnow
from vestra.validation import ValidationError, NotFoundError, ConflictError, InsufficientStockError


def _item(product, quantity, price, variant=None):
    return {
        "product_id": product.id,
        "variant_id": variant.id if variant is not None else None,
        "quantity": quantity,
        "unit_price_cents": price,
    }


class TestCompleteSale:

    def test_sale_decrements_stock(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 5)

        result = complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 2, 5000)])

        assert result.total_cents == 10000
        assert quantity_of(store_a, simple_product) == 3

        sale = db_session.get(Sale, result.sale_id)
        assert sale.seller_id == seller_ctx.user_id
        assert sale.channel == "store"
        assert [(i.position, i.quantity, i.line_total_cents) for i in sale.items] == [(1, 2, 10000)]

    def test_sale_keeps_callers_uncommitted_credit(
        self, db_session, seller_ctx, store_a, store_a2, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 5)
        upsert_add(store_a2.id, simple_product.id, None, 7)

        complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 5000)])

        assert quantity_of(store_a, simple_product) == 4
        assert quantity_of(store_a2, simple_product) == 7

    def test_insufficient_stock_message(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 2)

        with pytest.raises(InsufficientStockError) as exc:
            complete_sale(seller_ctx, store_a.id, "cash", [_item(simple_product, 3, 5000)])

        assert "Disponível: 2" in str(exc.value)
        assert str(exc.value) == "Estoque insuficiente. Disponível: 2, solicitado: 3."
        assert quantity_of(store_a, simple_product) == 2
        assert db_session.query(Sale).count() == 0

    def test_atomic_when_second_item_fails(
        self, db_session, seller_ctx, store_a, simple_product, variant_product, set_stock, quantity_of
    ):
        blue = variant_product.variants[0]
        set_stock(store_a, simple_product, 10)
        set_stock(store_a, variant_product, 1, variant=blue)

        with pytest.raises(InsufficientStockError):
            complete_sale(seller_ctx, store_a.id, "debit", [
                _item(simple_product, 4, 5000),
                _item(variant_product, 2, 12000, blue),
            ])

        assert quantity_of(store_a, simple_product) == 10
        assert quantity_of(store_a, variant_product, blue) == 1
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_missing_row_is_not_found(self, db_session, seller_ctx, store_a, simple_product):
        with pytest.raises(NotFoundError) as exc:
            complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 5000)])
        assert str(exc.value) == "Estoque não encontrado para um dos itens."

    def test_duplicate_lines_are_aggregated(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 3)

        with pytest.raises(InsufficientStockError) as exc:
            complete_sale(seller_ctx, store_a.id, "pix", [
                _item(simple_product, 2, 5000),
                _item(simple_product, 2, 5000),
            ])

        assert exc.value.requested == 4
        assert exc.value.available == 3
        assert quantity_of(store_a, simple_product) == 3

    def test_duplicate_lines_keep_cart_order(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 5)

        result = complete_sale(seller_ctx, store_a.id, "pix", [
            _item(simple_product, 1, 5000),
            _item(simple_product, 2, 4500),
        ])

        sale = db_session.get(Sale, result.sale_id)
        assert [(i.position, i.unit_price_cents) for i in sale.items] == [(1, 5000), (2, 4500)]
        assert quantity_of(store_a, simple_product) == 2

    def test_variant_sale(self, db_session, seller_ctx, store_a, variant_product, set_stock, quantity_of):
        blue, black = variant_product.variants
        set_stock(store_a, variant_product, 3, variant=blue)
        set_stock(store_a, variant_product, 3, variant=black)

        complete_sale(seller_ctx, store_a.id, "pix", [_item(variant_product, 1, 12000, black)])

        assert quantity_of(store_a, variant_product, blue) == 3
        assert quantity_of(store_a, variant_product, black) == 2

    def test_empty_cart(self, db_session, seller_ctx, store_a):
        with pytest.raises(ValidationError):
            complete_sale(seller_ctx, store_a.id, "pix", [])

    def test_unknown_payment_method(self, db_session, seller_ctx, store_a, simple_product):
        with pytest.raises(ValidationError):
            complete_sale(seller_ctx, store_a.id, "boleto", [_item(simple_product, 1, 100)])

    @pytest.mark.parametrize("quantity,price", [(0, 100), (-1, 100), (1, -5), (1, 10.5)])
    def test_invalid_items(self, db_session, seller_ctx, store_a, simple_product, quantity, price):
        with pytest.raises(ValidationError):
            complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, quantity, price)])

    def test_foreign_store(self, db_session, seller_ctx, store_b, simple_product):
        with pytest.raises(NotFoundError):
            complete_sale(seller_ctx, store_b.id, "pix", [_item(simple_product, 1, 100)])

    def test_foreign_product(self, db_session, seller_ctx, store_a, product_b):
        with pytest.raises(NotFoundError):
            complete_sale(seller_ctx, store_a.id, "pix", [_item(product_b, 1, 100)])

    def test_client_must_be_in_org(self, db_session, seller_ctx, store_a, simple_product, set_stock, client_a, quantity_of):
        set_stock(store_a, simple_product, 5)
        result = complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 100)], client_id=client_a.id)
        assert db_session.get(Sale, result.sale_id).client_id == client_a.id

        with pytest.raises(NotFoundError):
            complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 100)], client_id=999999)
        assert quantity_of(store_a, simple_product) == 4


class TestMoney:

    def test_interest_only_for_credit(self, db_session, seller_ctx, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)

        credit = complete_sale(
            seller_ctx, store_a.id, "credit", [_item(simple_product, 1, 10000)], interest_rate_bps=250,
        )
        pix = complete_sale(
            seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 10000)], interest_rate_bps=250,
        )

        credit_sale = db_session.get(Sale, credit.sale_id)
        pix_sale = db_session.get(Sale, pix.sale_id)
        assert (credit_sale.interest_cents, credit_sale.total_cents) == (250, 10250)
        assert (pix_sale.interest_rate_bps, pix_sale.interest_cents, pix_sale.total_cents) == (0, 0, 10000)

    def test_total_identity(self, db_session, seller_ctx, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)
        result = complete_sale(
            seller_ctx, store_a.id, "credit", [_item(simple_product, 3, 3333)],
            interest_rate_bps=199, surcharge_cents=150,
        )
        sale = db_session.get(Sale, result.sale_id)
        assert sale.subtotal_cents == 9999
        assert sale.total_cents == sale.subtotal_cents + sale.interest_cents + sale.surcharge_cents

    @pytest.mark.parametrize("rate", [-1, 10001])
    def test_rate_out_of_range(self, db_session, seller_ctx, store_a, simple_product, rate):
        with pytest.raises(ValidationError):
            complete_sale(seller_ctx, store_a.id, "credit", [_item(simple_product, 1, 100)], interest_rate_bps=rate)

    def test_negative_surcharge_is_zero(self):
        totals = compute_totals([SaleItemInput(1, None, 1, 1000)], "pix", surcharge_cents=-300)
        assert totals.surcharge_cents == 0
        assert totals.total_cents == 1000

    def test_half_up_rounding(self):
        # 1 cent * 5000 bps = 0.5 cent -> 1
        assert round_half_up_div(1 * 5000, 10_000) == 1
        assert round_half_up_div(1 * 4999, 10_000) == 0
        totals = compute_totals([SaleItemInput(1, None, 1, 1)], "credit", interest_rate_bps=5000)
        assert totals.interest_cents == 1


class TestClosedCash:

    def _close_today(self, db_session, store, user):
        start, _ = store_day_bounds(store, utcnow())
        closure = CashClosure(
            org_id=store.org_id,
            store_id=store.id,
            closed_by=user.id,
            period_start=start,
            period_end=utcnow(),
            total_cents=0,
            sales_count=0,
        )
        db_session.add(closure)
        db_session.commit()
        return closure

    def test_store_sale_refused_after_closure(
        self, db_session, seller_ctx, owner_a, store_a, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 5)
        self._close_today(db_session, store_a, owner_a)

        with pytest.raises(ConflictError):
            complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 5000)])

        assert quantity_of(store_a, simple_product) == 5

    def test_ecommerce_sale_allowed_after_closure(
        self, db_session, seller_ctx, owner_a, store_a, simple_product, set_stock
    ):
        set_stock(store_a, simple_product, 5)
        self._close_today(db_session, store_a, owner_a)

        result = complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 5000)], is_ecommerce=True)

        assert db_session.get(Sale, result.sale_id).channel == "ecommerce"

    def test_yesterdays_closure_does_not_block(
        self, db_session, seller_ctx, owner_a, store_a, simple_product, set_stock
    ):
        set_stock(store_a, simple_product, 5)
        start, _ = store_day_bounds(store_a, utcnow())
        db_session.add(CashClosure(
            org_id=store_a.org_id, store_id=store_a.id, closed_by=owner_a.id,
            period_start=start - timedelta(days=1), period_end=start - timedelta(hours=1),
            total_cents=0, sales_count=0,
        ))
        db_session.commit()

        result = complete_sale(seller_ctx, store_a.id, "pix", [_item(simple_product, 1, 5000)])
        assert result.sale_id is not None
