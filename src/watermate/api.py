"""FastAPI REST API for the watermate order lifecycle."""

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional

from . import __version__
from .errors import (
    InvalidCredentialError,
    InvalidOrderError,
    InvalidSchemaVersionError,
    InvalidTransitionError,
    NotAuthenticatedError,
    NotFoundError,
    OperationFailedError,
    WatermateError,
)
from .marketplace import Marketplace
from .models import (
    Location,
    Notification,
    NotificationType,
    Order,
    OrderDraft,
    OrderFilters,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Shop,
    User,
    UserRole,
)
from .order_ledger import order_stats


# --- Pydantic Schemas ---


class LocationSchema(BaseModel):
    latitude: float
    longitude: float
    address: str
    floor: Optional[str] = None
    door: Optional[str] = None


class UserSchema(BaseModel):
    id: str
    phone: str
    name: str
    role: UserRole
    location: Optional[LocationSchema] = None
    created_at: str
    updated_at: str


class ShopSchema(BaseModel):
    id: str
    name: str
    owner_id: str
    location: LocationSchema
    phone: str
    operating_zone: float
    price_per_litre: float
    minimum_order_litres: int
    is_active: bool
    subscription: str
    rating: float
    total_orders: int


class ShopListResponse(BaseModel):
    shops: list[ShopSchema]
    count: int


class OrderSchema(BaseModel):
    id: str
    client_id: str
    shop_id: str
    litres: int
    total_amount: float
    delivery_location: LocationSchema
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: OrderStatus
    order_date: str
    delivery_date: Optional[str] = None
    mpesa_transaction_id: Optional[str] = None
    notes: Optional[str] = None
    client_name: str
    client_phone: str
    shop_name: str


class OrderCreateRequest(BaseModel):
    """Request body for placing an order."""

    client_id: str
    shop_id: str
    litres: int
    delivery_location: LocationSchema
    payment_method: Optional[PaymentMethod] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    client_name: str = ""
    client_phone: str = ""
    shop_name: Optional[str] = None
    mpesa_transaction_id: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[OrderStatus] = Field(
        default=None, description="Ignored: new orders always start pending"
    )


class OrderStatusRequest(BaseModel):
    status: OrderStatus


class PaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus
    transaction_id: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class OrderStatsSchema(BaseModel):
    total: int
    pending: int
    preparing: int
    delivering: int
    completed: int
    cancelled: int
    revenue: float
    payments_completed: int
    payments_pending: int
    mpesa_total: float
    cash_total: float


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int
    stats: OrderStatsSchema


class NotificationSchema(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    is_read: bool
    created_at: str
    action_url: Optional[str] = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationSchema]
    count: int
    unread_count: int


class MarkAllReadResponse(BaseModel):
    user_id: str
    marked: int


class LoginRequest(BaseModel):
    phone: str
    otp: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    phone: str
    otp: str


class SessionResponse(BaseModel):
    is_authenticated: bool
    requires_otp: bool = False
    user: Optional[UserSchema] = None


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


def get_marketplace() -> Marketplace:
    """Get a Marketplace backed by the configured data directory."""
    return Marketplace.from_settings()


def order_to_schema(order: Order) -> OrderSchema:
    """Convert dataclass Order to Pydantic schema."""
    return OrderSchema(**order.to_dict())


def notification_to_schema(notification: Notification) -> NotificationSchema:
    return NotificationSchema(**notification.to_dict())


def shop_to_schema(shop: Shop) -> ShopSchema:
    return ShopSchema(**shop.to_dict())


def user_to_schema(user: User) -> UserSchema:
    return UserSchema(**user.to_dict())


def _draft_from_request(request: OrderCreateRequest) -> OrderDraft:
    return OrderDraft(
        client_id=request.client_id,
        shop_id=request.shop_id,
        litres=request.litres,
        delivery_location=Location(**request.delivery_location.model_dump()),
        payment_method=request.payment_method,
        payment_status=request.payment_status,
        client_name=request.client_name,
        client_phone=request.client_phone,
        shop_name=request.shop_name,
        mpesa_transaction_id=request.mpesa_transaction_id,
        notes=request.notes,
        status=request.status,
    )


# --- FastAPI App ---


app = FastAPI(
    title="watermate API",
    description="REST API for water-delivery orders and notifications",
    version=__version__,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes (subclasses inherit their base's code)
ERROR_STATUS_CODES: dict[type, int] = {
    NotFoundError: 404,
    InvalidOrderError: 400,
    InvalidTransitionError: 409,
    InvalidCredentialError: 401,
    NotAuthenticatedError: 401,
    OperationFailedError: 500,
    InvalidSchemaVersionError: 500,
}


def status_code_for(exc: WatermateError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(WatermateError)
async def watermate_error_handler(request: Request, exc: WatermateError) -> JSONResponse:
    """Map WatermateError subclasses to appropriate HTTP responses."""
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    try:
        market = get_marketplace()
        return {
            "status": "ok",
            "order_count": len(market.orders),
            "notification_count": len(market.notifications),
        }
    except WatermateError as e:
        return {
            "status": "error",
            "detail": str(e),
        }


# --- Session Endpoints ---


@app.get("/api/session", response_model=SessionResponse)
def get_session():
    """Return the current session."""
    session = get_marketplace().session
    user = session.current_user if session.is_authenticated else None
    return SessionResponse(
        is_authenticated=session.is_authenticated,
        user=user_to_schema(user) if user else None,
    )


@app.post("/api/session/login", response_model=SessionResponse)
def login(request: LoginRequest):
    """Log in by phone. Without an OTP, reports that one is required."""
    session = get_marketplace().session
    result = session.login(request.phone, request.otp)
    return SessionResponse(
        is_authenticated=session.is_authenticated,
        requires_otp=result.requires_otp,
        user=user_to_schema(result.user) if result.user else None,
    )


@app.post("/api/session/verify-otp", response_model=SessionResponse)
def verify_otp(request: VerifyOtpRequest):
    session = get_marketplace().session
    user = session.verify_otp(request.phone, request.otp)
    return SessionResponse(is_authenticated=True, user=user_to_schema(user))


@app.post("/api/session/logout", response_model=SessionResponse)
def logout():
    session = get_marketplace().session
    session.logout()
    return SessionResponse(is_authenticated=False)


# --- Shop Endpoints ---


@app.get("/api/shops", response_model=ShopListResponse)
def list_shops(active_only: bool = Query(default=False)):
    """List shops from the catalog."""
    shops = get_marketplace().catalog.list_shops(active_only=active_only)
    return ShopListResponse(shops=[shop_to_schema(s) for s in shops], count=len(shops))


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[list[OrderStatus]] = Query(None, description="Filter by order status"),
    payment_method: Optional[list[PaymentMethod]] = Query(None),
    payment_status: Optional[list[PaymentStatus]] = Query(None),
    shop_id: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, description="ISO 8601 lower bound on order_date"),
    date_to: Optional[str] = Query(None, description="ISO 8601 upper bound on order_date"),
):
    """List orders, newest first, with dashboard stats for the result."""
    filters = OrderFilters(
        statuses=status or [],
        payment_methods=payment_method or [],
        payment_statuses=payment_status or [],
        shop_id=shop_id,
        client_id=client_id,
        date_from=date_from,
        date_to=date_to,
    )
    orders = get_marketplace().orders.list_orders(filters)
    return OrderListResponse(
        orders=[order_to_schema(o) for o in orders],
        count=len(orders),
        stats=OrderStatsSchema(**order_stats(orders).to_dict()),
    )


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def create_order(request: OrderCreateRequest):
    """Place an order. The shop owner is notified."""
    order = get_marketplace().orders.create_order(_draft_from_request(request))
    return order_to_schema(order)


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str):
    order = get_marketplace().orders.get_order_by_id(order_id)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(order_id: str, request: OrderStatusRequest):
    """Change an order's status. The client is notified."""
    order = get_marketplace().orders.update_order_status(order_id, request.status)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/payment", response_model=OrderSchema)
def update_payment_status(order_id: str, request: PaymentStatusRequest):
    """Change an order's payment status. Completed payments notify the client."""
    order = get_marketplace().orders.update_payment_status(
        order_id, request.payment_status, request.transaction_id
    )
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/cancel", response_model=OrderSchema)
def cancel_order(order_id: str, request: Optional[CancelRequest] = None):
    reason = request.reason if request else None
    order = get_marketplace().orders.cancel_order(order_id, reason)
    return order_to_schema(order)


# --- Notification Endpoints ---


@app.get("/api/users/{user_id}/notifications", response_model=NotificationListResponse)
def list_notifications(user_id: str, unread_only: bool = Query(default=False)):
    """List a user's notifications, newest first."""
    ledger = get_marketplace().notifications
    notifications = ledger.get_notifications(user_id)
    if unread_only:
        notifications = [n for n in notifications if not n.is_read]
    return NotificationListResponse(
        notifications=[notification_to_schema(n) for n in notifications],
        count=len(notifications),
        unread_count=ledger.get_unread_count(user_id),
    )


@app.post("/api/users/{user_id}/notifications/read-all", response_model=MarkAllReadResponse)
def mark_all_notifications_read(user_id: str):
    marked = get_marketplace().notifications.mark_all_as_read(user_id)
    return MarkAllReadResponse(user_id=user_id, marked=marked)


@app.post("/api/notifications/{notification_id}/read", status_code=204)
def mark_notification_read(notification_id: str):
    """Mark a notification read. Unknown IDs are ignored."""
    get_marketplace().notifications.mark_as_read(notification_id)


@app.delete("/api/notifications/{notification_id}", status_code=204)
def delete_notification(notification_id: str):
    get_marketplace().notifications.remove_notification(notification_id)
