"""Command-line interface for watermate."""

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .config import Settings
from .errors import WatermateError
from .log import configure_logging
from .marketplace import Marketplace
from .models import (
    OrderDraft,
    OrderFilters,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)
from .order_ledger import order_stats
from .utils import (
    format_amount,
    format_notification,
    format_order,
    parse_location,
    truncate_id,
)


def get_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, with command-line overrides applied."""
    settings = Settings.from_env()
    if getattr(args, "data_dir", None):
        settings.data_dir = Path(args.data_dir)
    if getattr(args, "strict", False):
        settings.strict_transitions = True
    return settings


def get_marketplace(args: argparse.Namespace) -> Marketplace:
    return Marketplace.from_settings(get_settings(args))


def _resolve_notification_id(market: Marketplace, user_id: str, id_prefix: str) -> str:
    """Expand a notification ID prefix within a user's inbox."""
    matches = [
        n.id for n in market.notifications.get_notifications(user_id)
        if n.id.startswith(id_prefix)
    ]
    if id_prefix in matches or len(matches) != 1:
        return id_prefix
    return matches[0]


def cmd_login(args: argparse.Namespace) -> int:
    """Log in by phone number."""
    try:
        market = get_marketplace(args)
        result = market.session.login(args.phone, args.otp)

        if result.requires_otp:
            print(f"OTP sent to {args.phone}.")
            print(f"Run: watermate login {args.phone} --otp <code>")
            return 0

        user = result.user
        print(f"Logged in as {user.name} ({user.role.value})")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_logout(args: argparse.Namespace) -> int:
    """Log out."""
    try:
        market = get_marketplace(args)
        market.session.logout()
        print("Logged out.")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_whoami(args: argparse.Namespace) -> int:
    """Show the logged-in user."""
    try:
        market = get_marketplace(args)
        user = market.session.require_user()

        if args.json:
            print(json.dumps(user.to_dict(), indent=2))
            return 0

        print(f"{user.name} ({user.role.value})")
        print(f"  ID: {user.id}")
        print(f"  Phone: {user.phone}")
        unread = market.notifications.get_unread_count(user.id)
        print(f"  Unread notifications: {unread}")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_shops(args: argparse.Namespace) -> int:
    """List shops."""
    try:
        market = get_marketplace(args)
        shops = market.catalog.list_shops(active_only=args.active)

        if args.json:
            print(json.dumps([s.to_dict() for s in shops], indent=2))
            return 0

        print(f"Shops ({len(shops)}):")
        print()
        for shop in shops:
            state = "active" if shop.is_active else "inactive"
            print(f"  {shop.id}  {shop.name} ({state})")
            print(
                f"           KES {format_amount(shop.price_per_litre)}/L, "
                f"min {shop.minimum_order_litres}L, zone {format_amount(shop.operating_zone)}km"
            )
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders."""
    try:
        market = get_marketplace(args)

        filters = OrderFilters(
            statuses=[OrderStatus(s) for s in args.status or []],
            payment_methods=[PaymentMethod(m) for m in args.payment_method or []],
            shop_id=args.shop,
            client_id=args.client,
        )
        orders = market.orders.list_orders(filters)
        if args.mine:
            user = market.session.require_user()
            if user.role == UserRole.CLIENT:
                orders = [o for o in orders if o.client_id == user.id]
            elif user.role == UserRole.SHOP:
                owned = {s.id for s in market.catalog.shops_owned_by(user.id)}
                orders = [o for o in orders if o.shop_id in owned]

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2))
            return 0

        if not orders:
            print("No orders found.")
            return 0

        stats = order_stats(orders)
        print(f"Orders ({len(orders)}):")
        print(
            f"Pending {stats.pending}, preparing {stats.preparing}, "
            f"delivering {stats.delivering}, delivered {stats.completed}, "
            f"cancelled {stats.cancelled}"
        )
        print()
        for order in orders:
            print(format_order(order, verbose=args.verbose))
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order."""
    try:
        market = get_marketplace(args)
        order = market.orders.find_order(args.order_id)

        if args.json:
            print(json.dumps(order.to_dict(), indent=2))
        else:
            print(format_order(order, verbose=True))
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_create(args: argparse.Namespace) -> int:
    """Place an order as the logged-in client."""
    try:
        market = get_marketplace(args)
        user = market.session.require_user()

        if args.location:
            location = parse_location(args.location)
        elif user.location is not None:
            location = user.location
        else:
            print("Error: --location is required (no saved location)", file=sys.stderr)
            return 1

        draft = OrderDraft(
            client_id=user.id,
            shop_id=args.shop,
            litres=args.litres,
            delivery_location=location,
            payment_method=PaymentMethod(args.payment),
            client_name=user.name,
            client_phone=user.phone,
            notes=args.notes,
        )
        order = market.orders.create_order(draft)

        print(f"Placed order: {truncate_id(order.id)}")
        print(f"  Shop: {order.shop_name}")
        print(f"  {order.litres}L, KES {format_amount(order.total_amount)} ({order.payment_method.value})")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_status(args: argparse.Namespace) -> int:
    """Change an order's status."""
    try:
        market = get_marketplace(args)
        order = market.orders.find_order(args.order_id)
        order = market.orders.update_order_status(order.id, OrderStatus(args.status))

        print(f"Order {truncate_id(order.id)} is now {order.status.label}")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_payment(args: argparse.Namespace) -> int:
    """Change an order's payment status."""
    try:
        market = get_marketplace(args)
        order = market.orders.find_order(args.order_id)
        order = market.orders.update_payment_status(
            order.id, PaymentStatus(args.status), args.txn
        )

        print(f"Order {truncate_id(order.id)} payment is now {order.payment_status.value}")
        if order.mpesa_transaction_id:
            print(f"  Transaction: {order.mpesa_transaction_id}")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_cancel(args: argparse.Namespace) -> int:
    """Cancel an order."""
    try:
        market = get_marketplace(args)
        order = market.orders.find_order(args.order_id)
        order = market.orders.cancel_order(order.id, args.reason)

        print(f"Cancelled order: {truncate_id(order.id)}")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _notification_user(market: Marketplace, args: argparse.Namespace) -> str:
    if args.user:
        return args.user
    return market.session.require_user().id


def cmd_notifications_list(args: argparse.Namespace) -> int:
    """List notifications for a user (default: the logged-in user)."""
    try:
        market = get_marketplace(args)
        user_id = _notification_user(market, args)
        notifications = market.notifications.get_notifications(user_id)
        if args.unread:
            notifications = [n for n in notifications if not n.is_read]

        if args.json:
            print(json.dumps([n.to_dict() for n in notifications], indent=2))
            return 0

        if not notifications:
            print("No notifications.")
            return 0

        unread = market.notifications.get_unread_count(user_id)
        print(f"Notifications ({len(notifications)}, {unread} unread):")
        print()
        for n in notifications:
            print(format_notification(n))
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_notifications_read(args: argparse.Namespace) -> int:
    """Mark one notification read."""
    try:
        market = get_marketplace(args)
        user_id = _notification_user(market, args)
        notification_id = _resolve_notification_id(market, user_id, args.notification_id)
        market.notifications.mark_as_read(notification_id)

        print(f"Marked read: {truncate_id(notification_id)}")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_notifications_read_all(args: argparse.Namespace) -> int:
    """Mark all of a user's notifications read."""
    try:
        market = get_marketplace(args)
        user_id = _notification_user(market, args)
        count = market.notifications.mark_all_as_read(user_id)

        print(f"Marked {count} notification(s) read.")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_notifications_remove(args: argparse.Namespace) -> int:
    """Delete a notification."""
    try:
        market = get_marketplace(args)
        user_id = _notification_user(market, args)
        notification_id = _resolve_notification_id(market, user_id, args.notification_id)
        removed = market.notifications.remove_notification(notification_id)

        if removed is None:
            print(f"Notification not found: {args.notification_id}")
        else:
            print(f"Removed notification: {truncate_id(removed.id)}")
        return 0

    except WatermateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        settings = get_settings(args)
        settings.export_env()

        print("Starting watermate API server...")
        print(f"Data directory: {settings.data_dir}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "watermate.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
        )
        return 0

    except ImportError:
        print("Error: uvicorn not installed. Run: pip install uvicorn", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="watermate",
        description="Place and track water-delivery orders and their notifications.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--data-dir", help="State directory (default: $WATERMATE_DATA_DIR or ./data)"
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Reject status changes that skip or reverse the delivery lifecycle",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # login
    login_parser = subparsers.add_parser("login", help="Log in by phone number")
    login_parser.add_argument("phone", help="Phone number, e.g. +254700000004")
    login_parser.add_argument("--otp", help="Four digit code (omit to request one)")

    # logout
    subparsers.add_parser("logout", help="Log out")

    # whoami
    whoami_parser = subparsers.add_parser("whoami", help="Show the logged-in user")
    whoami_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # shops
    shops_parser = subparsers.add_parser("shops", help="List shops")
    shops_parser.add_argument("--active", action="store_true", help="Only active shops")
    shops_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    # orders list
    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--status", action="append", choices=[s.value for s in OrderStatus],
        help="Filter by status (repeatable)",
    )
    orders_list_parser.add_argument(
        "--payment-method", action="append", choices=[m.value for m in PaymentMethod],
        help="Filter by payment method (repeatable)",
    )
    orders_list_parser.add_argument("--shop", help="Filter by shop ID")
    orders_list_parser.add_argument("--client", help="Filter by client ID")
    orders_list_parser.add_argument(
        "--mine", action="store_true",
        help="Only orders of the logged-in client, or of shops the logged-in owner runs",
    )
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    orders_list_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show payment and delivery details"
    )

    # orders show
    orders_show_parser = orders_subparsers.add_parser("show", help="Show an order")
    orders_show_parser.add_argument("order_id", help="Order ID (or prefix)")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders create
    orders_create_parser = orders_subparsers.add_parser(
        "create", help="Place an order as the logged-in client"
    )
    orders_create_parser.add_argument("--shop", "-s", required=True, help="Shop ID")
    orders_create_parser.add_argument(
        "--litres", "-l", type=int, required=True, help="Litres to deliver"
    )
    orders_create_parser.add_argument(
        "--payment", "-p", choices=[m.value for m in PaymentMethod],
        default=PaymentMethod.MPESA.value, help="Payment method (default: mpesa)",
    )
    orders_create_parser.add_argument(
        "--location",
        help=(
            "Delivery location, given as --location=lat,lng,address[,floor[,door]] "
            "so a negative latitude isn't read as an option (default: saved location)"
        ),
    )
    orders_create_parser.add_argument("--notes", "-n", help="Notes for the shop")

    # orders status
    orders_status_parser = orders_subparsers.add_parser("status", help="Change order status")
    orders_status_parser.add_argument("order_id", help="Order ID (or prefix)")
    orders_status_parser.add_argument("status", choices=[s.value for s in OrderStatus])

    # orders payment
    orders_payment_parser = orders_subparsers.add_parser(
        "payment", help="Change payment status"
    )
    orders_payment_parser.add_argument("order_id", help="Order ID (or prefix)")
    orders_payment_parser.add_argument("status", choices=[s.value for s in PaymentStatus])
    orders_payment_parser.add_argument("--txn", help="Transaction reference")

    # orders cancel
    orders_cancel_parser = orders_subparsers.add_parser("cancel", help="Cancel an order")
    orders_cancel_parser.add_argument("order_id", help="Order ID (or prefix)")
    orders_cancel_parser.add_argument("--reason", "-r", help="Cancellation reason")

    # notifications (subcommand group)
    notif_parser = subparsers.add_parser("notifications", help="Manage notifications")
    notif_subparsers = notif_parser.add_subparsers(dest="notifications_command")

    notif_list_parser = notif_subparsers.add_parser("list", help="List notifications")
    notif_list_parser.add_argument("--user", "-u", help="User ID (default: logged-in user)")
    notif_list_parser.add_argument("--unread", action="store_true", help="Only unread")
    notif_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    notif_read_parser = notif_subparsers.add_parser("read", help="Mark a notification read")
    notif_read_parser.add_argument("notification_id", help="Notification ID (or prefix)")
    notif_read_parser.add_argument("--user", "-u", help="User ID (default: logged-in user)")

    notif_read_all_parser = notif_subparsers.add_parser(
        "read-all", help="Mark all notifications read"
    )
    notif_read_all_parser.add_argument("--user", "-u", help="User ID (default: logged-in user)")

    notif_remove_parser = notif_subparsers.add_parser("remove", help="Delete a notification")
    notif_remove_parser.add_argument("notification_id", help="Notification ID (or prefix)")
    notif_remove_parser.add_argument("--user", "-u", help="User ID (default: logged-in user)")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = get_settings(args)
    configure_logging(settings.log_level, json_format=settings.log_json)

    if not args.command:
        parser.print_help()
        return 0

    # Handle orders subcommands
    if args.command == "orders":
        orders_commands = {
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "create": cmd_orders_create,
            "status": cmd_orders_status,
            "payment": cmd_orders_payment,
            "cancel": cmd_orders_cancel,
        }
        cmd_func = orders_commands.get(getattr(args, "orders_command", None))
        if cmd_func is None:
            parser.parse_args(["orders", "--help"])
            return 0
        return cmd_func(args)

    # Handle notifications subcommands
    if args.command == "notifications":
        notifications_commands = {
            "list": cmd_notifications_list,
            "read": cmd_notifications_read,
            "read-all": cmd_notifications_read_all,
            "remove": cmd_notifications_remove,
        }
        cmd_func = notifications_commands.get(getattr(args, "notifications_command", None))
        if cmd_func is None:
            parser.parse_args(["notifications", "--help"])
            return 0
        return cmd_func(args)

    commands = {
        "login": cmd_login,
        "logout": cmd_logout,
        "whoami": cmd_whoami,
        "shops": cmd_shops,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
