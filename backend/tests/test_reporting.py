# Overview: Pytest coverage for receipts, closure reports, daily sales and stock overview.

import pytest

from vestra.services.reporting_service import (
    get_sale_for_receipt,
    get_cash_closure_report,
    get_daily_sales,
    get_stock_overview,
)
from vestra.services.cash_closure_service import close_daily_cash
from vestra.services.sales_service import complete_sale
from vestra.services.products_service import create_product
from vestra.validation import NotFoundError, PermissionDeniedError


class TestReceipt:

    def test_receipt_names_and_totals(
        self, db_session, seller_ctx, store_a, simple_product, variant_product, set_stock
    ):
        blue = variant_product.variants[0]
        set_stock(store_a, simple_product, 5)
        set_stock(store_a, variant_product, 5, variant=blue)

        result = complete_sale(seller_ctx, store_a.id, "credit", [
            {"product_id": simple_product.id, "quantity": 2, "unit_price_cents": 5000},
            {"product_id": variant_product.id, "variant_id": blue.id, "quantity": 1, "unit_price_cents": 12000},
        ], interest_rate_bps=100, surcharge_cents=500)

        receipt = get_sale_for_receipt(seller_ctx, result.sale_id)

        assert [i["name"] for i in receipt["items"]] == ["Camiseta Básica", "Calça Jeans (Azul / 38)"]
        assert receipt["organization"] == {"name": "Acme Moda", "document": "12.345.678/0001-90"}
        assert receipt["store"] == {"name": "Matriz"}
        assert receipt["subtotal_cents"] == 22000
        assert receipt["interest_cents"] == 220
        assert receipt["surcharge_cents"] == 500
        assert receipt["total_cents"] == 22720
        assert receipt["created_at"].endswith("Z")

    def test_foreign_sale_not_found(self, db_session, seller_ctx, owner_b_ctx, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 5)
        result = complete_sale(seller_ctx, store_a.id, "pix", [
            {"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 5000},
        ])

        with pytest.raises(NotFoundError):
            get_sale_for_receipt(owner_b_ctx, result.sale_id)


class TestClosureReport:

    def test_report_lists_stamped_sales_newest_first(
        self, db_session, owner_ctx, seller_ctx, store_a, simple_product, set_stock
    ):
        set_stock(store_a, simple_product, 10)
        ids = [
            complete_sale(seller_ctx, store_a.id, "pix", [
                {"product_id": simple_product.id, "quantity": 1, "unit_price_cents": price},
            ]).sale_id
            for price in (1000, 2000)
        ]
        closure = close_daily_cash(owner_ctx, store_a.id)

        report = get_cash_closure_report(owner_ctx, closure.id)

        assert report["closure"]["sales_count"] == 2
        assert report["closure"]["total_cents"] == 3000
        assert report["store_name"] == "Matriz"
        assert report["organization_name"] == "Acme Moda"
        assert report["closed_by_name"] == "Owner"
        assert [s["id"] for s in report["sales"]] == list(reversed(ids))
        assert report["sales"][0]["seller_name"] == "Seller"

    def test_seller_forbidden(self, db_session, owner_ctx, seller_ctx, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)
        complete_sale(seller_ctx, store_a.id, "pix", [
            {"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 1000},
        ])
        closure = close_daily_cash(owner_ctx, store_a.id)

        with pytest.raises(PermissionDeniedError):
            get_cash_closure_report(seller_ctx, closure.id)

    def test_unknown_closure(self, db_session, owner_ctx):
        with pytest.raises(NotFoundError):
            get_cash_closure_report(owner_ctx, 999)


class TestDailySales:

    def test_daily_sales_totals(self, db_session, owner_ctx, seller_ctx, store_a, store_a2, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)
        set_stock(store_a2, simple_product, 10)
        for price in (1000, 1500):
            complete_sale(seller_ctx, store_a.id, "cash", [
                {"product_id": simple_product.id, "quantity": 1, "unit_price_cents": price},
            ])
        complete_sale(seller_ctx, store_a2.id, "cash", [
            {"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 9999},
        ])

        daily = get_daily_sales(owner_ctx, store_a.id)

        assert daily["count"] == 2
        assert daily["total_cents"] == 2500
        assert daily["is_closed"] is False

    def test_seller_forbidden(self, db_session, seller_ctx, store_a):
        with pytest.raises(PermissionDeniedError):
            get_daily_sales(seller_ctx, store_a.id)


class TestStockOverview:

    def test_overview_counts(
        self, db_session, owner_ctx, org_a, store_a, store_a2, simple_product, variant_product, set_stock
    ):
        blue, black = variant_product.variants
        set_stock(store_a, simple_product, 3)
        set_stock(store_a2, simple_product, 4)
        set_stock(store_a, variant_product, 1, variant=blue)
        set_stock(store_a, variant_product, 2, variant=black)
        archived = create_product(org_a.id, "Boné", 3000, status="inactive")
        set_stock(store_a, archived, 100)

        overview = get_stock_overview(owner_ctx)

        assert overview["active_products"] == 2
        assert overview["total_units"] == 110
        # variant product sums to 3 (low), simple product to 7
        assert overview["low_stock_products"] == 1
        assert overview["low_stock_threshold"] == 5

    def test_other_tenant_not_counted(self, db_session, owner_ctx, store_b, product_b, set_stock):
        set_stock(store_b, product_b, 40)

        overview = get_stock_overview(owner_ctx)

        assert overview == {
            "active_products": 0,
            "total_units": 0,
            "low_stock_products": 0,
            "low_stock_threshold": 5,
        }
