"""The authoritative order collection and its transitions."""

import dataclasses
import logging
import math

from .catalog import Catalog
from .errors import InvalidOrderError, InvalidTransitionError, OperationFailedError, OrderNotFoundError
from .lifecycle import LifecycleCoordinator, is_valid_transition
from .models import (
    Order,
    OrderDraft,
    OrderFilters,
    OrderStats,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    _generate_id,
    _utc_now,
)
from .notification_ledger import NotificationLedger
from .state_store import ORDERS_KEY, StateStore
from .utils import format_amount

logger = logging.getLogger(__name__)


class OrderLedger:
    """Owns the order collection.

    Every mutation builds the new collection, writes it to the store and only
    then makes it current, so a failed write leaves the ledger untouched. The
    notification a mutation triggers is emitted after that commit.
    """

    def __init__(
        self,
        catalog: Catalog,
        notifications: NotificationLedger,
        store: StateStore | None = None,
        strict_transitions: bool = False,
    ):
        """
        Initialize OrderLedger.

        Args:
            catalog: Shop and identity lookups (prices, shop owners).
            notifications: Inbox that receives lifecycle notifications.
            store: Backing store; when given, orders are rehydrated from it.
            strict_transitions: Reject status changes that skip or reverse the
                delivery lifecycle instead of only logging a warning.
        """
        self.catalog = catalog
        self.notifications = notifications
        self.lifecycle = LifecycleCoordinator(notifications, catalog)
        self.strict_transitions = strict_transitions
        self._store = store
        self._orders: list[Order] = []
        self.load()

    # --- Persistence ---

    def load(self) -> None:
        """Replace the in-memory collection with the stored one."""
        if self._store is None:
            return
        data = self._store.load(ORDERS_KEY)
        if data is None:
            self._orders = []
            return
        self._orders = [Order.from_dict(o) for o in data.get("orders", [])]

    def refresh(self) -> list[Order]:
        """Reload orders from the store and return them."""
        self.load()
        return self.list_orders()

    def to_dict(self) -> dict:
        return {"orders": [o.to_dict() for o in self._orders]}

    def _commit(self, orders: list[Order], operation: str) -> None:
        if self._store is not None:
            try:
                self._store.save(ORDERS_KEY, {"orders": [o.to_dict() for o in orders]})
            except OSError as e:
                logger.error(
                    "Failed to persist orders",
                    extra={"operation": operation, "error": str(e)},
                )
                raise OperationFailedError(operation, e) from e
        self._orders = orders

    def _replace(self, updated: Order, operation: str) -> None:
        self._commit(
            [updated if o.id == updated.id else o for o in self._orders],
            operation,
        )

    # --- Creation ---

    def _validate_draft(self, draft: OrderDraft) -> None:
        if not draft.client_id:
            raise InvalidOrderError("client_id is required")
        if not draft.shop_id:
            raise InvalidOrderError("shop_id is required")
        if draft.payment_method is None:
            raise InvalidOrderError("payment_method is required")
        try:
            PaymentMethod(draft.payment_method)
            PaymentStatus(draft.payment_status)
        except ValueError as e:
            raise InvalidOrderError(str(e)) from e
        if not isinstance(draft.litres, int) or isinstance(draft.litres, bool):
            raise InvalidOrderError("litres must be a whole number")
        if draft.litres <= 0:
            raise InvalidOrderError("litres must be positive")

        shop = self.catalog.get_shop(draft.shop_id)
        if not shop.is_active:
            raise InvalidOrderError(f"shop {shop.id} is not accepting orders")
        if draft.litres < shop.minimum_order_litres:
            raise InvalidOrderError(
                f"minimum order for {shop.name} is {shop.minimum_order_litres}L"
            )

        # Totals are always litres x the shop's current price.
        if draft.total_amount is not None:
            expected = self.catalog.quote(shop.id, draft.litres)
            if not math.isclose(draft.total_amount, expected, abs_tol=0.005):
                raise InvalidOrderError(
                    f"total_amount {format_amount(draft.total_amount)} does not match "
                    f"{draft.litres}L at KES {format_amount(shop.price_per_litre)}/L "
                    f"(expected {format_amount(expected)})"
                )

    def create_order(self, draft: OrderDraft) -> Order:
        """
        Create a pending order and notify the shop owner.

        Raises:
            InvalidOrderError: If the draft fails validation.
            ShopNotFoundError: If the shop isn't in the catalog.
            OperationFailedError: If the order can't be persisted.
        """
        self._validate_draft(draft)
        shop = self.catalog.get_shop(draft.shop_id)

        order = Order(
            id=_generate_id("order"),
            client_id=draft.client_id,
            shop_id=shop.id,
            litres=draft.litres,
            total_amount=self.catalog.quote(shop.id, draft.litres),
            delivery_location=draft.delivery_location,
            payment_method=PaymentMethod(draft.payment_method),
            payment_status=PaymentStatus(draft.payment_status),
            status=OrderStatus.PENDING,
            order_date=_utc_now(),
            client_name=draft.client_name,
            client_phone=draft.client_phone,
            shop_name=draft.shop_name or shop.name,
            mpesa_transaction_id=draft.mpesa_transaction_id,
            notes=draft.notes,
        )

        self._commit([order, *self._orders], "create_order")
        logger.info(
            "Order created",
            extra={
                "operation": "create_order",
                "order_id": order.id,
                "user_id": order.client_id,
                "status": order.status.value,
            },
        )

        self.lifecycle.order_created(order)
        return order

    # --- Transitions ---

    def _check_transition(self, order: Order, requested: OrderStatus) -> None:
        if is_valid_transition(order.status, requested):
            return
        if self.strict_transitions:
            raise InvalidTransitionError(order.id, order.status.value, requested.value)
        logger.warning(
            "Out-of-order status change %s -> %s",
            order.status.value,
            requested.value,
            extra={"operation": "update_order_status", "order_id": order.id},
        )

    def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Move an order to ``status`` and notify the client.

        Moving to delivered stamps ``delivery_date`` with the current time,
        replacing any earlier stamp.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            InvalidTransitionError: In strict mode, if the change skips or
                reverses the lifecycle.
        """
        status = OrderStatus(status)
        order = self.get_order_by_id(order_id)
        self._check_transition(order, status)

        changes: dict = {"status": status}
        if status == OrderStatus.DELIVERED:
            changes["delivery_date"] = _utc_now()
        updated = dataclasses.replace(order, **changes)

        self._replace(updated, "update_order_status")
        logger.info(
            "Order status updated",
            extra={
                "operation": "update_order_status",
                "order_id": order_id,
                "status": status.value,
            },
        )

        self.lifecycle.status_changed(updated)
        return updated

    def update_payment_status(
        self,
        order_id: str,
        payment_status: PaymentStatus,
        transaction_id: str | None = None,
    ) -> Order:
        """
        Set an order's payment status.

        A given ``transaction_id`` replaces the stored reference; without one
        the previous reference is kept. The client is notified only when the
        payment is completed.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        payment_status = PaymentStatus(payment_status)
        order = self.get_order_by_id(order_id)

        updated = dataclasses.replace(
            order,
            payment_status=payment_status,
            mpesa_transaction_id=transaction_id or order.mpesa_transaction_id,
        )

        self._replace(updated, "update_payment_status")
        logger.info(
            "Payment status updated",
            extra={
                "operation": "update_payment_status",
                "order_id": order_id,
                "status": payment_status.value,
            },
        )

        self.lifecycle.payment_changed(updated)
        return updated

    def cancel_order(self, order_id: str, reason: str | None = None) -> Order:
        """
        Cancel an order and notify the client.

        Notes are overwritten with the cancellation reason.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            InvalidTransitionError: In strict mode, if the order was already
                out for delivery or delivered.
        """
        order = self.get_order_by_id(order_id)
        self._check_transition(order, OrderStatus.CANCELLED)

        updated = dataclasses.replace(
            order,
            status=OrderStatus.CANCELLED,
            notes=f"Cancelled: {reason}" if reason else "Cancelled",
        )

        self._replace(updated, "cancel_order")
        logger.info(
            "Order cancelled",
            extra={
                "operation": "cancel_order",
                "order_id": order_id,
                "status": OrderStatus.CANCELLED.value,
            },
        )

        self.lifecycle.order_cancelled(updated, reason)
        return updated

    # --- Queries ---

    def get_order_by_id(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        for order in self._orders:
            if order.id == order_id:
                return order
        raise OrderNotFoundError(order_id)

    def find_order(self, id_prefix: str) -> Order:
        """
        Get an order by full ID or unique ID prefix.

        Raises:
            OrderNotFoundError: If nothing matches or the prefix is ambiguous.
        """
        matches = [o for o in self._orders if o.id.startswith(id_prefix)]
        for order in matches:
            if order.id == id_prefix:
                return order

        if not matches:
            raise OrderNotFoundError(id_prefix)
        if len(matches) > 1:
            raise OrderNotFoundError(
                f"{id_prefix} (ambiguous, matches {len(matches)} orders)"
            )

        return matches[0]

    def get_orders_by_shop(self, shop_id: str) -> list[Order]:
        return [o for o in self._orders if o.shop_id == shop_id]

    def get_orders_by_client(self, client_id: str) -> list[Order]:
        return [o for o in self._orders if o.client_id == client_id]

    def list_orders(self, filters: OrderFilters | None = None) -> list[Order]:
        """All orders matching ``filters`` (all orders if None), newest first."""
        if filters is None:
            return list(self._orders)
        return [o for o in self._orders if filters.matches(o)]

    def __len__(self) -> int:
        return len(self._orders)


def order_stats(orders: list[Order]) -> OrderStats:
    """Summarize orders the way the shop and admin dashboards show them."""
    stats = OrderStats(total=len(orders))
    for order in orders:
        if order.status == OrderStatus.PENDING:
            stats.pending += 1
        elif order.status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING):
            stats.preparing += 1
        elif order.status == OrderStatus.OUT_FOR_DELIVERY:
            stats.delivering += 1
        elif order.status == OrderStatus.DELIVERED:
            stats.completed += 1
        elif order.status == OrderStatus.CANCELLED:
            stats.cancelled += 1

        stats.revenue += order.total_amount
        if order.payment_status == PaymentStatus.COMPLETED:
            stats.payments_completed += 1
        elif order.payment_status == PaymentStatus.PENDING:
            stats.payments_pending += 1

        if order.payment_method == PaymentMethod.MPESA:
            stats.mpesa_total += order.total_amount
        else:
            stats.cash_total += order.total_amount
    return stats
