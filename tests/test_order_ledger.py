"""Tests for OrderLedger."""

import pytest

from watermate.errors import (
    InvalidOrderError,
    InvalidTransitionError,
    OperationFailedError,
    OrderNotFoundError,
    ShopNotFoundError,
)
from watermate.marketplace import Marketplace
from watermate.models import (
    NotificationType,
    OrderFilters,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from watermate.order_ledger import order_stats

from .conftest import make_draft


class TestCreateOrder:
    def test_create_sets_pending_and_total(self, market):
        order = market.orders.create_order(make_draft(litres=20))

        assert order.status == OrderStatus.PENDING
        assert order.total_amount == 100
        assert order.id.startswith("order-")
        assert order.order_date
        assert order.shop_name == "Pure Water Westlands"
        assert order.delivery_date is None

    def test_create_ignores_supplied_status(self, market):
        order = market.orders.create_order(make_draft(status=OrderStatus.DELIVERED))
        assert order.status == OrderStatus.PENDING

    def test_create_assigns_unique_ids(self, market):
        first = market.orders.create_order(make_draft())
        second = market.orders.create_order(make_draft())
        assert first.id != second.id

    def test_create_prepends(self, market):
        first = market.orders.create_order(make_draft())
        second = market.orders.create_order(make_draft())
        assert [o.id for o in market.orders.list_orders()] == [second.id, first.id]

    def test_create_uses_fractional_price(self, market):
        order = market.orders.create_order(make_draft(shop_id="shop-2", litres=15))
        assert order.total_amount == 67.5

    def test_create_rejects_mismatched_total(self, market):
        with pytest.raises(InvalidOrderError, match="expected 100"):
            market.orders.create_order(make_draft(litres=20, total_amount=1.0))

        assert len(market.orders) == 0
        assert market.notifications.get_notifications("shop-1") == []

    def test_create_accepts_matching_total(self, market):
        order = market.orders.create_order(
            make_draft(shop_id="shop-2", litres=15, total_amount=67.5)
        )
        assert order.total_amount == 67.5

    def test_create_notifies_shop_owner(self, market):
        order = market.orders.create_order(make_draft(shop_id="shop-3", litres=10))

        # shop-3 is owned by user shop-1
        inbox = market.notifications.get_notifications("shop-1")
        assert len(inbox) == 1
        assert inbox[0].title == "New Order Received"
        assert inbox[0].message == "New order for 10L from Peter Kimani"
        assert inbox[0].type == NotificationType.ORDER
        assert inbox[0].action_url == f"/shop/orders/{order.id}"
        assert market.notifications.get_notifications("shop-shop-3") == []

    @pytest.mark.parametrize(
        "overrides, reason",
        [
            ({"litres": 0}, "positive"),
            ({"litres": -5}, "positive"),
            ({"shop_id": ""}, "shop_id"),
            ({"client_id": ""}, "client_id"),
            ({"payment_method": None}, "payment_method"),
            ({"litres": 5}, "minimum"),
        ],
    )
    def test_create_rejects_invalid_drafts(self, market, overrides, reason):
        with pytest.raises(InvalidOrderError, match=reason):
            market.orders.create_order(make_draft(**overrides))

        assert len(market.orders) == 0
        assert len(market.notifications) == 0

    def test_create_unknown_shop_raises(self, market):
        with pytest.raises(ShopNotFoundError):
            market.orders.create_order(make_draft(shop_id="shop-99"))

    def test_create_rejects_inactive_shop(self, store):
        from watermate.catalog import Catalog, _default_shops

        shops = _default_shops()
        shops[0].is_active = False
        market = Marketplace(store=store, catalog=Catalog(shops=shops))

        with pytest.raises(InvalidOrderError, match="not accepting"):
            market.orders.create_order(make_draft())


class TestUpdateOrderStatus:
    def test_delivered_scenario(self, market):
        order = market.orders.create_order(make_draft(litres=20))
        assert order.total_amount == 100

        updated = market.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        assert updated.status == OrderStatus.DELIVERED
        assert updated.delivery_date is not None
        inbox = market.notifications.get_notifications("client-1")
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.ORDER
        assert inbox[0].message == "Your order is now delivered"
        assert inbox[0].action_url == f"/client/orders/{order.id}"

    def test_status_message_replaces_all_underscores(self, market):
        order = market.orders.create_order(make_draft())
        market.orders.update_order_status(order.id, OrderStatus.OUT_FOR_DELIVERY)

        inbox = market.notifications.get_notifications("client-1")
        assert inbox[0].message == "Your order is now out for delivery"

    def test_non_delivered_keeps_delivery_date(self, market):
        order = market.orders.create_order(make_draft())
        delivered = market.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        updated = market.orders.update_order_status(order.id, OrderStatus.PREPARING)

        assert updated.delivery_date == delivered.delivery_date

    def test_redelivering_restamps(self, market, monkeypatch):
        import watermate.order_ledger as ledger_module

        order = market.orders.create_order(make_draft())
        monkeypatch.setattr(ledger_module, "_utc_now", lambda: "2025-01-01T00:00:00Z")
        market.orders.update_order_status(order.id, OrderStatus.DELIVERED)
        monkeypatch.setattr(ledger_module, "_utc_now", lambda: "2025-01-02T00:00:00Z")
        again = market.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        assert again.delivery_date == "2025-01-02T00:00:00Z"

    def test_accepts_plain_string_status(self, market):
        order = market.orders.create_order(make_draft())
        updated = market.orders.update_order_status(order.id, "confirmed")
        assert updated.status == OrderStatus.CONFIRMED

    def test_unknown_order_raises(self, market):
        with pytest.raises(OrderNotFoundError):
            market.orders.update_order_status("order-missing", OrderStatus.CONFIRMED)
        assert len(market.notifications) == 0

    def test_permissive_allows_backwards_with_warning(self, market, caplog):
        order = market.orders.create_order(make_draft())
        market.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        with caplog.at_level("WARNING", logger="watermate"):
            updated = market.orders.update_order_status(order.id, OrderStatus.PENDING)

        assert updated.status == OrderStatus.PENDING
        assert "Out-of-order status change delivered -> pending" in caplog.text

    def test_strict_rejects_backwards(self, store):
        market = Marketplace(store=store, strict_transitions=True)
        order = market.orders.create_order(make_draft())
        for status in (
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ):
            market.orders.update_order_status(order.id, status)

        with pytest.raises(InvalidTransitionError):
            market.orders.update_order_status(order.id, OrderStatus.PENDING)

        assert market.orders.get_order_by_id(order.id).status == OrderStatus.DELIVERED

    def test_strict_rejects_skipping(self, store):
        market = Marketplace(store=store, strict_transitions=True)
        order = market.orders.create_order(make_draft())

        with pytest.raises(InvalidTransitionError):
            market.orders.update_order_status(order.id, OrderStatus.DELIVERED)


class TestUpdatePaymentStatus:
    def test_completed_scenario(self, market):
        order = market.orders.create_order(make_draft())

        updated = market.orders.update_payment_status(
            order.id, PaymentStatus.COMPLETED, "TXN123"
        )

        assert updated.payment_status == PaymentStatus.COMPLETED
        assert updated.mpesa_transaction_id == "TXN123"
        payments = [
            n for n in market.notifications.get_notifications("client-1")
            if n.type == NotificationType.PAYMENT
        ]
        assert len(payments) == 1
        assert payments[0].message == "Payment of KES 100 has been confirmed"

    def test_non_completed_is_silent(self, market):
        order = market.orders.create_order(make_draft())

        market.orders.update_payment_status(order.id, PaymentStatus.FAILED)

        assert market.notifications.get_notifications("client-1") == []

    def test_keeps_previous_transaction_id(self, market):
        order = market.orders.create_order(make_draft())
        market.orders.update_payment_status(order.id, PaymentStatus.PENDING, "TXN1")

        updated = market.orders.update_payment_status(order.id, PaymentStatus.REFUNDED)

        assert updated.mpesa_transaction_id == "TXN1"

    def test_payment_independent_of_status(self, market):
        order = market.orders.create_order(
            make_draft(payment_method=PaymentMethod.CASH_ON_DELIVERY)
        )
        market.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        updated = market.orders.update_payment_status(order.id, PaymentStatus.FAILED)

        assert updated.status == OrderStatus.DELIVERED
        assert updated.payment_status == PaymentStatus.FAILED

    def test_unknown_order_raises(self, market):
        with pytest.raises(OrderNotFoundError):
            market.orders.update_payment_status("order-missing", PaymentStatus.COMPLETED)


class TestCancelOrder:
    def test_cancel_with_reason(self, market):
        order = market.orders.create_order(make_draft())

        cancelled = market.orders.cancel_order(order.id, "Changed my mind")

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.notes == "Cancelled: Changed my mind"
        inbox = market.notifications.get_notifications("client-1")
        assert inbox[0].title == "Order Cancelled"
        assert inbox[0].message == "Your order has been cancelled. Changed my mind"

    def test_cancel_without_reason(self, market):
        order = market.orders.create_order(make_draft(notes="Gate code 1234"))

        cancelled = market.orders.cancel_order(order.id)

        assert cancelled.notes == "Cancelled"
        inbox = market.notifications.get_notifications("client-1")
        assert inbox[0].message == "Your order has been cancelled."

    def test_cancel_twice(self, market):
        order = market.orders.create_order(make_draft())

        market.orders.cancel_order(order.id, "first")
        again = market.orders.cancel_order(order.id, "second")

        assert again.status == OrderStatus.CANCELLED
        assert again.notes == "Cancelled: second"

    def test_cancel_overrides_delivered_when_permissive(self, market):
        order = market.orders.create_order(make_draft())
        market.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        cancelled = market.orders.cancel_order(order.id)

        assert cancelled.status == OrderStatus.CANCELLED

    def test_strict_cancel_after_dispatch_raises(self, store):
        market = Marketplace(store=store, strict_transitions=True)
        order = market.orders.create_order(make_draft())
        market.orders.update_order_status(order.id, OrderStatus.CONFIRMED)
        market.orders.update_order_status(order.id, OrderStatus.PREPARING)
        market.orders.update_order_status(order.id, OrderStatus.OUT_FOR_DELIVERY)

        with pytest.raises(InvalidTransitionError):
            market.orders.cancel_order(order.id)

    def test_cancel_unknown_raises(self, market):
        with pytest.raises(OrderNotFoundError):
            market.orders.cancel_order("order-missing")


class TestQueries:
    def test_get_order_by_id_missing_raises(self, market):
        with pytest.raises(OrderNotFoundError):
            market.orders.get_order_by_id("order-does-not-exist")

    def test_get_by_shop_and_client(self, market):
        a = market.orders.create_order(make_draft(shop_id="shop-1"))
        b = market.orders.create_order(
            make_draft(shop_id="shop-2", client_id="client-2", client_name="Mary Njeri")
        )

        assert [o.id for o in market.orders.get_orders_by_shop("shop-1")] == [a.id]
        assert [o.id for o in market.orders.get_orders_by_client("client-2")] == [b.id]
        assert market.orders.get_orders_by_shop("shop-3") == []

    def test_find_order_by_prefix(self, market):
        order = market.orders.create_order(make_draft())

        assert market.orders.find_order(order.id[:14]).id == order.id

    def test_list_orders_with_filters(self, market):
        a = market.orders.create_order(make_draft())
        b = market.orders.create_order(
            make_draft(payment_method=PaymentMethod.CASH_ON_DELIVERY)
        )
        market.orders.update_order_status(a.id, OrderStatus.CONFIRMED)

        confirmed = market.orders.list_orders(OrderFilters(statuses=[OrderStatus.CONFIRMED]))
        cash = market.orders.list_orders(
            OrderFilters(payment_methods=[PaymentMethod.CASH_ON_DELIVERY])
        )
        future = market.orders.list_orders(OrderFilters(date_from="2999-01-01T00:00:00Z"))

        assert [o.id for o in confirmed] == [a.id]
        assert [o.id for o in cash] == [b.id]
        assert future == []

    def test_order_stats(self, market):
        a = market.orders.create_order(make_draft(litres=20))
        b = market.orders.create_order(
            make_draft(litres=10, payment_method=PaymentMethod.CASH_ON_DELIVERY)
        )
        c = market.orders.create_order(make_draft(litres=30))
        market.orders.update_order_status(a.id, OrderStatus.PREPARING)
        market.orders.update_order_status(b.id, OrderStatus.DELIVERED)
        market.orders.update_payment_status(b.id, PaymentStatus.COMPLETED)
        market.orders.cancel_order(c.id)

        stats = order_stats(market.orders.list_orders())

        assert stats.total == 3
        assert stats.preparing == 1
        assert stats.completed == 1
        assert stats.cancelled == 1
        assert stats.pending == 0
        assert stats.revenue == 300
        assert stats.payments_completed == 1
        assert stats.payments_pending == 2
        assert stats.mpesa_total == 250
        assert stats.cash_total == 50


class TestPersistence:
    def test_orders_rehydrate(self, store):
        first = Marketplace(store=store)
        order = first.orders.create_order(make_draft())
        first.orders.update_order_status(order.id, OrderStatus.CONFIRMED)

        second = Marketplace(store=store)

        assert second.orders.get_order_by_id(order.id).status == OrderStatus.CONFIRMED
        assert second.orders.to_dict() == first.orders.to_dict()
        assert second.notifications.to_dict() == first.notifications.to_dict()

    def test_refresh_picks_up_external_changes(self, store):
        reader = Marketplace(store=store)
        writer = Marketplace(store=store)
        order = writer.orders.create_order(make_draft())

        refreshed = reader.orders.refresh()

        assert [o.id for o in refreshed] == [order.id]

    def test_failed_write_leaves_ledger_unchanged(self, market, monkeypatch):
        order = market.orders.create_order(make_draft())
        notifications_before = len(market.notifications)

        def broken_save(key, data):
            raise OSError("disk full")

        monkeypatch.setattr(market.store, "save", broken_save)

        with pytest.raises(OperationFailedError):
            market.orders.update_order_status(order.id, OrderStatus.CONFIRMED)

        assert market.orders.get_order_by_id(order.id).status == OrderStatus.PENDING
        assert len(market.notifications) == notifications_before

    def test_notification_failure_keeps_order(self, market, monkeypatch):
        order = market.orders.create_order(make_draft())

        def broken_add(**kwargs):
            raise OperationFailedError("add_notification")

        monkeypatch.setattr(market.notifications, "add_notification", broken_add)

        updated = market.orders.update_order_status(order.id, OrderStatus.CONFIRMED)

        assert updated.status == OrderStatus.CONFIRMED
        assert market.orders.get_order_by_id(order.id).status == OrderStatus.CONFIRMED
