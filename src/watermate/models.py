"""Data models for watermate."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id(prefix: str) -> str:
    """Generate a new prefixed ID, e.g. ``order-3f2a...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


class UserRole(str, Enum):
    CLIENT = "client"
    SHOP = "shop"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    """Order status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        """Human readable form, e.g. 'out for delivery'."""
        return self.value.replace("_", " ")


class PaymentMethod(str, Enum):
    MPESA = "mpesa"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationType(str, Enum):
    ORDER = "order"
    PAYMENT = "payment"
    SYSTEM = "system"
    PROMOTION = "promotion"


class SubscriptionPlan(str, Enum):
    TRIAL = "trial"
    BASIC = "basic"
    PREMIER = "premier"


@dataclass
class Location:
    """A delivery or shop location."""

    latitude: float
    longitude: float
    address: str
    floor: str | None = None
    door: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
        }
        if self.floor is not None:
            result["floor"] = self.floor
        if self.door is not None:
            result["door"] = self.door
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Location":
        return cls(
            latitude=data["latitude"],
            longitude=data["longitude"],
            address=data.get("address", ""),
            floor=data.get("floor"),
            door=data.get("door"),
        )


@dataclass
class User:
    """A known identity (admin, shop owner or client)."""

    id: str
    phone: str
    name: str
    role: UserRole
    location: Location | None = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "role": self.role.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.location is not None:
            result["location"] = self.location.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        location = None
        if "location" in data:
            location = Location.from_dict(data["location"])
        return cls(
            id=data["id"],
            phone=data["phone"],
            name=data["name"],
            role=UserRole(data["role"]),
            location=location,
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Shop:
    """A water shop registered on the marketplace."""

    id: str
    name: str
    owner_id: str
    location: Location
    phone: str
    operating_zone: float  # radius in km
    price_per_litre: float
    minimum_order_litres: int
    is_active: bool = True
    subscription: SubscriptionPlan = SubscriptionPlan.TRIAL
    rating: float = 0.0
    total_orders: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "location": self.location.to_dict(),
            "phone": self.phone,
            "operating_zone": self.operating_zone,
            "price_per_litre": self.price_per_litre,
            "minimum_order_litres": self.minimum_order_litres,
            "is_active": self.is_active,
            "subscription": self.subscription.value,
            "rating": self.rating,
            "total_orders": self.total_orders,
        }


@dataclass
class Order:
    """One water-delivery transaction.

    ``client_name``, ``client_phone`` and ``shop_name`` are copied when the
    order is created and are not kept in sync with the catalog afterwards.
    """

    id: str
    client_id: str
    shop_id: str
    litres: int
    total_amount: float
    delivery_location: Location
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: OrderStatus
    order_date: str
    client_name: str
    client_phone: str
    shop_name: str
    delivery_date: str | None = None
    mpesa_transaction_id: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "client_id": self.client_id,
            "shop_id": self.shop_id,
            "litres": self.litres,
            "total_amount": self.total_amount,
            "delivery_location": self.delivery_location.to_dict(),
            "payment_method": self.payment_method.value,
            "payment_status": self.payment_status.value,
            "status": self.status.value,
            "order_date": self.order_date,
            "client_name": self.client_name,
            "client_phone": self.client_phone,
            "shop_name": self.shop_name,
        }
        if self.delivery_date is not None:
            result["delivery_date"] = self.delivery_date
        if self.mpesa_transaction_id is not None:
            result["mpesa_transaction_id"] = self.mpesa_transaction_id
        if self.notes is not None:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            client_id=data["client_id"],
            shop_id=data["shop_id"],
            litres=data["litres"],
            total_amount=data["total_amount"],
            delivery_location=Location.from_dict(data["delivery_location"]),
            payment_method=PaymentMethod(data["payment_method"]),
            payment_status=PaymentStatus(data["payment_status"]),
            status=OrderStatus(data["status"]),
            order_date=data["order_date"],
            client_name=data.get("client_name", ""),
            client_phone=data.get("client_phone", ""),
            shop_name=data.get("shop_name", ""),
            delivery_date=data.get("delivery_date"),
            mpesa_transaction_id=data.get("mpesa_transaction_id"),
            notes=data.get("notes"),
        )


@dataclass
class OrderDraft:
    """Input for creating an order.

    ``status`` is accepted for convenience but always ignored: new orders
    start out pending. ``total_amount`` is always quoted from the catalog; a
    supplied value must match that quote. ``shop_name`` is filled in from the
    catalog when left empty.
    """

    client_id: str
    shop_id: str
    litres: int
    delivery_location: Location
    payment_method: PaymentMethod | None
    client_name: str = ""
    client_phone: str = ""
    shop_name: str | None = None
    total_amount: float | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    mpesa_transaction_id: str | None = None
    notes: str | None = None
    status: OrderStatus | None = None


@dataclass
class OrderFilters:
    """Dashboard filters over the order collection. Empty fields match all."""

    statuses: list[OrderStatus] = field(default_factory=list)
    payment_methods: list[PaymentMethod] = field(default_factory=list)
    payment_statuses: list[PaymentStatus] = field(default_factory=list)
    date_from: str | None = None
    date_to: str | None = None
    shop_id: str | None = None
    client_id: str | None = None

    def matches(self, order: Order) -> bool:
        if self.statuses and order.status not in self.statuses:
            return False
        if self.payment_methods and order.payment_method not in self.payment_methods:
            return False
        if self.payment_statuses and order.payment_status not in self.payment_statuses:
            return False
        if self.shop_id and order.shop_id != self.shop_id:
            return False
        if self.client_id and order.client_id != self.client_id:
            return False
        # ISO 8601 UTC strings compare chronologically
        if self.date_from and order.order_date < self.date_from:
            return False
        if self.date_to and order.order_date > self.date_to:
            return False
        return True


@dataclass
class Notification:
    """A message addressed to a single user."""

    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    is_read: bool = False
    created_at: str = field(default_factory=_utc_now)
    action_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type.value,
            "is_read": self.is_read,
            "created_at": self.created_at,
        }
        if self.action_url is not None:
            result["action_url"] = self.action_url
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Notification":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            title=data["title"],
            message=data["message"],
            type=NotificationType(data["type"]),
            is_read=data.get("is_read", False),
            created_at=data.get("created_at", ""),
            action_url=data.get("action_url"),
        )

    @classmethod
    def create(
        cls,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType,
        action_url: str | None = None,
        is_read: bool = False,
    ) -> "Notification":
        """Create a new notification with generated ID and timestamp."""
        return cls(
            id=_generate_id("notif"),
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            is_read=is_read,
            created_at=_utc_now(),
            action_url=action_url,
        )


@dataclass
class OrderStats:
    """Status buckets and payment totals for a set of orders."""

    total: int = 0
    pending: int = 0
    preparing: int = 0  # confirmed + preparing
    delivering: int = 0
    completed: int = 0
    cancelled: int = 0
    revenue: float = 0.0
    payments_completed: int = 0
    payments_pending: int = 0
    mpesa_total: float = 0.0
    cash_total: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "preparing": self.preparing,
            "delivering": self.delivering,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "revenue": self.revenue,
            "payments_completed": self.payments_completed,
            "payments_pending": self.payments_pending,
            "mpesa_total": self.mpesa_total,
            "cash_total": self.cash_total,
        }
