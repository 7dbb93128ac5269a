"""Order lifecycle rules: status transitions and the notifications they trigger."""

import logging

from .catalog import Catalog
from .errors import WatermateError
from .models import Notification, NotificationType, Order, OrderStatus, PaymentStatus
from .notification_ledger import NotificationLedger
from .utils import format_amount

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[OrderStatus] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def is_valid_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """Whether ``current -> requested`` follows the delivery lifecycle.

    Re-applying the current status always counts as valid. Nothing leaves a
    terminal state.
    """
    if requested == current:
        return True
    if current in TERMINAL_STATES:
        return False
    return requested in VALID_TRANSITIONS[current]


class LifecycleCoordinator:
    """Emits the notification each order transition owes its counterpart.

    Emission is fire-and-forget: a failure is logged and the notification is
    dropped, the order change that triggered it stays committed.
    """

    def __init__(self, notifications: NotificationLedger, catalog: Catalog):
        self.notifications = notifications
        self.catalog = catalog

    def _emit(self, order: Order, event: str, **payload) -> Notification | None:
        try:
            return self.notifications.add_notification(**payload)
        except WatermateError:
            logger.warning(
                "Dropped %s notification",
                event,
                exc_info=True,
                extra={"operation": event, "order_id": order.id},
            )
            return None

    def order_created(self, order: Order) -> Notification | None:
        """Tell the shop owner about a new order."""
        owner_id = self.catalog.owner_of(order.shop_id)
        return self._emit(
            order,
            "order_created",
            user_id=owner_id,
            title="New Order Received",
            message=f"New order for {order.litres}L from {order.client_name}",
            type=NotificationType.ORDER,
            action_url=f"/shop/orders/{order.id}",
        )

    def status_changed(self, order: Order) -> Notification | None:
        """Tell the client their order moved to a new status."""
        return self._emit(
            order,
            "status_changed",
            user_id=order.client_id,
            title="Order Status Updated",
            message=f"Your order is now {order.status.label}",
            type=NotificationType.ORDER,
            action_url=f"/client/orders/{order.id}",
        )

    def payment_changed(self, order: Order) -> Notification | None:
        """Tell the client a payment went through. Other payment states are silent."""
        if order.payment_status != PaymentStatus.COMPLETED:
            return None
        return self._emit(
            order,
            "payment_changed",
            user_id=order.client_id,
            title="Payment Confirmed",
            message=f"Payment of KES {format_amount(order.total_amount)} has been confirmed",
            type=NotificationType.PAYMENT,
        )

    def order_cancelled(self, order: Order, reason: str | None = None) -> Notification | None:
        message = "Your order has been cancelled."
        if reason:
            message = f"{message} {reason}"
        return self._emit(
            order,
            "order_cancelled",
            user_id=order.client_id,
            title="Order Cancelled",
            message=message,
            type=NotificationType.ORDER,
        )
