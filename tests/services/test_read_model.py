"""Cached stock reads and the change feed that keeps them fresh."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import CartLine
from inventory_services.change_feed import ChangeFeed, StockChanged
from inventory_services.read_model import StockReadModel


def sell(sale_service, product_id, quantity, operator_id):
    return sale_service.finalize_sale(
        [CartLine(product_id=product_id, quantity=quantity, unit_price=Decimal("10.00"))],
        "cash",
        operator_id,
    )


class TestChangeFeed:
    def test_delivers_to_every_subscriber(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe(lambda e: seen.append(("a", e.source)))
        feed.subscribe(lambda e: seen.append(("b", e.source)))
        assert feed.publish(StockChanged.for_products([uuid4()], "test")) == 2
        assert seen == [("a", "test"), ("b", "test")]

    def test_failing_subscriber_is_isolated(self, captured_logs):
        feed = ChangeFeed()
        seen = []

        def broken(event):
            raise RuntimeError("screen closed")

        feed.subscribe(broken)
        feed.subscribe(seen.append)
        event = StockChanged.for_products([uuid4()], "finalize_sale")
        assert feed.publish(event) == 1
        assert seen == [event]
        failures = [r for r in captured_logs() if r["message"] == "change_feed_subscriber_failed"]
        assert failures[0]["exc_type"] == "RuntimeError"

    def test_unsubscribe(self):
        feed = ChangeFeed()
        seen = []
        unsubscribe = feed.subscribe(seen.append)
        assert feed.subscriber_count == 1
        unsubscribe()
        unsubscribe()
        assert feed.subscriber_count == 0
        assert feed.publish(StockChanged.for_products([], "test")) == 0
        assert seen == []


class TestStockReadModel:
    @pytest.fixture
    def product(self, make_product, make_batch):
        product_id = make_product()
        make_batch(product_id, 10)
        return product_id

    def test_second_read_is_cached(self, session_factory, clock, product):
        model = StockReadModel(session_factory, clock)
        assert model.available_quantity(product) == 10
        assert model.available_quantity(product) == 10
        assert (model.hits, model.misses) == (1, 1)

    def test_bulk_read(self, session_factory, clock, product, make_product):
        empty = make_product()
        model = StockReadModel(session_factory, clock)
        assert model.available_quantities([product, empty, product]) == {product: 10, empty: 0}
        assert model.misses == 2

    def test_sale_invalidates_through_feed(
        self, session_factory, clock, change_feed, sale_service, product, operator_id
    ):
        model = StockReadModel(session_factory, clock, change_feed)
        assert model.available_quantity(product) == 10
        sell(sale_service, product, 3, operator_id)
        assert model.available_quantity(product) == 7
        assert model.misses == 2

    def test_unrelated_products_stay_cached(
        self, session_factory, clock, change_feed, sale_service, product, make_product, make_batch, operator_id
    ):
        other = make_product()
        make_batch(other, 4)
        model = StockReadModel(session_factory, clock, change_feed)
        model.available_quantities([product, other])
        sell(sale_service, other, 1, operator_id)
        assert model.available_quantities([product, other]) == {product: 10, other: 3}
        assert model.hits == 1

    def test_without_feed_reads_are_stale_until_invalidated(
        self, session_factory, clock, sale_service, product, operator_id
    ):
        model = StockReadModel(session_factory, clock)
        model.available_quantity(product)
        sell(sale_service, product, 3, operator_id)
        assert model.available_quantity(product) == 10
        model.invalidate([product])
        assert model.available_quantity(product) == 7

    def test_day_rollover_drops_expired_stock(
        self, session_factory, clock, make_product, make_batch, captured_logs
    ):
        product = make_product()
        make_batch(product, 4, expiry_date=clock.today())
        make_batch(product, 6)
        model = StockReadModel(session_factory, clock)
        assert model.available_quantity(product) == 10

        clock.advance(days=1)
        assert model.available_quantity(product) == 6
        assert any(r["message"] == "read_model_day_rollover" for r in captured_logs())

    def test_close_unsubscribes(self, session_factory, clock, change_feed):
        model = StockReadModel(session_factory, clock, change_feed)
        assert change_feed.subscriber_count == 1
        model.close()
        model.close()
        assert change_feed.subscriber_count == 0

    def test_sale_during_load_is_not_cached(
        self, session_factory, clock, change_feed, sale_service, product, operator_id, monkeypatch
    ):
        model = StockReadModel(session_factory, clock, change_feed)
        real_load = model._load
        sold = []

        def load_then_sell(product_ids):
            loaded = real_load(product_ids)
            if not sold:
                sold.append(sell(sale_service, product, 4, operator_id))
            return loaded

        monkeypatch.setattr(model, "_load", load_then_sell)
        assert model.available_quantity(product) == 10
        assert model.available_quantity(product) == 6
        assert model.misses == 2

    def test_clear_during_load_is_not_cached(self, session_factory, clock, product, monkeypatch):
        model = StockReadModel(session_factory, clock)
        real_load = model._load

        def load_then_clear(product_ids):
            loaded = real_load(product_ids)
            model.invalidate()
            return loaded

        monkeypatch.setattr(model, "_load", load_then_clear)
        model.available_quantity(product)
        model.available_quantity(product)
        assert (model.hits, model.misses) == (0, 2)
