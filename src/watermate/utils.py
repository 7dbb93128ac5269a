"""Utility functions for watermate."""

import re

from .errors import InvalidOrderError
from .models import Location, Notification, Order


def format_amount(amount: float) -> str:
    """Format a KES amount without a trailing '.0' on whole numbers."""
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def parse_location(location: str) -> Location:
    """
    Parse a delivery location from the command line.

    Format: "lat,lng,address[,floor[,door]]", e.g.
    "-1.2921,36.787,Kilimani Area Nairobi,3,B12". The address itself may
    not contain commas.

    Raises:
        InvalidOrderError: If the location format is invalid.
    """
    match = re.match(
        r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*,([^,]+)(?:,([^,]*))?(?:,([^,]*))?$",
        location,
    )
    if not match:
        raise InvalidOrderError(
            f"invalid location '{location}', expected 'lat,lng,address[,floor[,door]]'"
        )

    return Location(
        latitude=float(match.group(1)),
        longitude=float(match.group(2)),
        address=match.group(3).strip(),
        floor=(match.group(4) or "").strip() or None,
        door=(match.group(5) or "").strip() or None,
    )


def truncate_id(item_id: str) -> str:
    """Shorten an ``order-<hex>`` style ID for display."""
    prefix, sep, rest = item_id.partition("-")
    if sep and len(rest) > 8:
        return f"{prefix}-{rest[:8]}"
    return item_id


def format_order(order: Order, verbose: bool = False) -> str:
    """Format an order for display."""
    result = (
        f"{truncate_id(order.id)}  {order.litres}L  KES {format_amount(order.total_amount)}"
        f"  {order.status.label} / payment {order.payment_status.value}"
    )
    result += f"\n         {order.client_name} -> {order.shop_name}  ({order.order_date})"

    if verbose:
        result += f"\n         Payment method: {order.payment_method.value}"
        if order.mpesa_transaction_id:
            result += f"\n         Transaction: {order.mpesa_transaction_id}"
        result += f"\n         Deliver to: {order.delivery_location.address}"
        if order.delivery_date:
            result += f"\n         Delivered: {order.delivery_date}"
        if order.notes:
            result += f"\n         Notes: {order.notes}"

    return result


def format_notification(notification: Notification) -> str:
    marker = " " if notification.is_read else "*"
    return (
        f"{marker} {truncate_id(notification.id)}  [{notification.type.value}] "
        f"{notification.title}: {notification.message}"
    )
