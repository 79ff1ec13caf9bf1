# Overview: Pytest coverage for transfers, exchanges, returns and incoming stock.

import pytest

from vestra.models import InventoryItem
from vestra.services.transfer_service import transfer_stock
from vestra.services.return_service import register_exchange_or_return, register_return_add_stock
from vestra.services.receive_service import add_incoming_stock
from vestra.validation import ValidationError, NotFoundError, ConflictError, InsufficientStockError


# =============================================================================
# TRANSFERS
# =============================================================================

class TestTransfer:

    def test_transfer_creates_destination_row(
        self, db_session, owner_ctx, store_a, store_a2, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 10)

        result = transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_a2.id, 5)

        assert (result.from_quantity, result.to_quantity) == (5, 5)
        assert quantity_of(store_a, simple_product) == 5
        assert quantity_of(store_a2, simple_product) == 5
        destination = db_session.query(InventoryItem).filter_by(store_id=store_a2.id).one()
        assert destination.min_stock == 5

    def test_transfer_conserves_total(
        self, db_session, owner_ctx, store_a, store_a2, variant_product, set_stock, quantity_of
    ):
        blue = variant_product.variants[0]
        set_stock(store_a, variant_product, 8, variant=blue)
        set_stock(store_a2, variant_product, 1, variant=blue)

        transfer_stock(owner_ctx, variant_product.id, blue.id, store_a.id, store_a2.id, 3)

        assert quantity_of(store_a, variant_product, blue) == 5
        assert quantity_of(store_a2, variant_product, blue) == 4

    def test_same_store_rejected(self, db_session, owner_ctx, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)
        with pytest.raises(ConflictError):
            transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_a.id, 1)

    def test_insufficient_origin(
        self, db_session, owner_ctx, store_a, store_a2, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 2)

        with pytest.raises(InsufficientStockError) as exc:
            transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_a2.id, 5)

        assert str(exc.value) == "Estoque insuficiente na loja de origem. Disponível: 2."
        assert quantity_of(store_a, simple_product) == 2
        assert quantity_of(store_a2, simple_product) is None

    def test_missing_origin_row(self, db_session, owner_ctx, store_a, store_a2, simple_product):
        with pytest.raises(NotFoundError):
            transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_a2.id, 1)

    @pytest.mark.parametrize("quantity", [0, -3, "abc", None, True])
    def test_invalid_quantity(self, db_session, owner_ctx, store_a, store_a2, simple_product, quantity):
        with pytest.raises(ValidationError):
            transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_a2.id, quantity)

    def test_fractional_quantity_is_floored(
        self, db_session, owner_ctx, store_a, store_a2, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 10)
        transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_a2.id, "2.9")
        assert quantity_of(store_a2, simple_product) == 2

    def test_foreign_destination_store(
        self, db_session, owner_ctx, store_a, store_b, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 10)
        with pytest.raises(NotFoundError):
            transfer_stock(owner_ctx, simple_product.id, None, store_a.id, store_b.id, 1)
        assert quantity_of(store_a, simple_product) == 10


# =============================================================================
# EXCHANGES AND RETURNS
# =============================================================================

class TestExchangeAndReturn:

    def test_exchange_decrements(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 4)
        remaining = register_exchange_or_return(seller_ctx, store_a.id, simple_product.id, None, 1, "exchange")
        assert remaining == 3
        assert quantity_of(store_a, simple_product) == 3

    def test_exchange_insufficient(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 1)
        with pytest.raises(InsufficientStockError):
            register_exchange_or_return(seller_ctx, store_a.id, simple_product.id, None, 2, "exchange")
        assert quantity_of(store_a, simple_product) == 1

    def test_return_kind_is_redirected(self, db_session, seller_ctx, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 4)
        with pytest.raises(ValidationError):
            register_exchange_or_return(seller_ctx, store_a.id, simple_product.id, None, 1, "return")
        assert quantity_of(store_a, simple_product) == 4

    def test_return_creates_row(self, db_session, seller_ctx, store_a, variant_product, quantity_of):
        black = variant_product.variants[1]
        quantity = register_return_add_stock(seller_ctx, store_a.id, variant_product.id, black.id, 2)
        assert quantity == 2
        assert quantity_of(store_a, variant_product, black) == 2

    def test_return_to_foreign_store(self, db_session, seller_ctx, store_b, simple_product):
        with pytest.raises(NotFoundError):
            register_return_add_stock(seller_ctx, store_b.id, simple_product.id, None, 1)


# =============================================================================
# INCOMING STOCK
# =============================================================================

class TestIncomingStock:

    def test_distributes_over_stores(
        self, db_session, owner_ctx, store_a, store_a2, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 1)

        applied = add_incoming_stock(owner_ctx, simple_product.id, None, [
            {"store_id": store_a.id, "quantity": 4},
            {"store_id": store_a2.id, "quantity": 6},
        ])

        assert [(e.store_id, e.quantity) for e in applied] == [(store_a.id, 4), (store_a2.id, 6)]
        assert quantity_of(store_a, simple_product) == 5
        assert quantity_of(store_a2, simple_product) == 6

    def test_non_positive_entries_dropped(self, db_session, owner_ctx, store_a, store_a2, simple_product, quantity_of):
        applied = add_incoming_stock(owner_ctx, simple_product.id, None, [
            {"store_id": store_a.id, "quantity": 0},
            {"store_id": store_a2.id, "quantity": 3},
        ])
        assert len(applied) == 1
        assert quantity_of(store_a, simple_product) is None

    def test_all_empty_rejected(self, db_session, owner_ctx, store_a, simple_product):
        with pytest.raises(ValidationError):
            add_incoming_stock(owner_ctx, simple_product.id, None, [{"store_id": store_a.id, "quantity": 0}])

    def test_foreign_store_skipped(self, db_session, owner_ctx, store_a, store_b, simple_product, quantity_of):
        applied = add_incoming_stock(owner_ctx, simple_product.id, None, [
            {"store_id": store_a.id, "quantity": 2},
            {"store_id": store_b.id, "quantity": 5},
        ])

        assert [e.store_id for e in applied] == [store_a.id]
        assert quantity_of(store_a, simple_product) == 2
        assert db_session.query(InventoryItem).filter_by(store_id=store_b.id).count() == 0

    def test_variant_product_needs_variant(self, db_session, owner_ctx, store_a, variant_product):
        with pytest.raises(ValidationError):
            add_incoming_stock(owner_ctx, variant_product.id, None, [{"store_id": store_a.id, "quantity": 1}])
