"""Known identities and shops for watermate."""

from .errors import ShopNotFoundError, UserNotFoundError
from .models import Location, Shop, SubscriptionPlan, User, UserRole


def _default_users() -> list[User]:
    return [
        User(
            id="admin-1",
            phone="+254700000001",
            name="Admin User",
            role=UserRole.ADMIN,
            created_at="2024-01-01T00:00:00Z",
            updated_at="2024-01-01T00:00:00Z",
        ),
        User(
            id="shop-1",
            phone="+254700000002",
            name="John Mwangi",
            role=UserRole.SHOP,
            location=Location(-1.2676, 36.8108, "Westlands Area, Nairobi"),
            created_at="2024-01-15T00:00:00Z",
            updated_at="2024-01-15T00:00:00Z",
        ),
        User(
            id="shop-2",
            phone="+254700000003",
            name="Grace Wanjiku",
            role=UserRole.SHOP,
            location=Location(-1.3194, 36.7085, "Karen Area, Nairobi"),
            created_at="2024-02-01T00:00:00Z",
            updated_at="2024-02-01T00:00:00Z",
        ),
        User(
            id="client-1",
            phone="+254700000004",
            name="Peter Kimani",
            role=UserRole.CLIENT,
            location=Location(-1.2921, 36.7870, "Kilimani Area, Nairobi"),
            created_at="2024-01-20T00:00:00Z",
            updated_at="2024-01-20T00:00:00Z",
        ),
        User(
            id="client-2",
            phone="+254700000005",
            name="Mary Njeri",
            role=UserRole.CLIENT,
            location=Location(-1.2833, 36.8172, "Kileleshwa Area, Nairobi"),
            created_at="2024-02-05T00:00:00Z",
            updated_at="2024-02-05T00:00:00Z",
        ),
    ]


def _default_shops() -> list[Shop]:
    return [
        Shop(
            id="shop-1",
            name="Pure Water Westlands",
            owner_id="shop-1",
            location=Location(-1.2676, 36.8108, "Westlands Shopping Center, Nairobi"),
            phone="+254700000002",
            operating_zone=5,
            price_per_litre=5,
            minimum_order_litres=10,
            subscription=SubscriptionPlan.PREMIER,
            rating=4.8,
            total_orders=2543,
        ),
        Shop(
            id="shop-2",
            name="Crystal Clear Karen",
            owner_id="shop-2",
            location=Location(-1.3194, 36.7085, "Karen Shopping Center, Nairobi"),
            phone="+254700000003",
            operating_zone=8,
            price_per_litre=4.5,
            minimum_order_litres=15,
            subscription=SubscriptionPlan.BASIC,
            rating=4.6,
            total_orders=1876,
        ),
        Shop(
            id="shop-3",
            name="Fresh Flow Kilimani",
            owner_id="shop-1",
            location=Location(-1.2905, 36.7935, "Kilimani Plaza, Nairobi"),
            phone="+254700000006",
            operating_zone=6,
            price_per_litre=5.5,
            minimum_order_litres=10,
            subscription=SubscriptionPlan.TRIAL,
            rating=4.2,
            total_orders=567,
        ),
    ]


class Catalog:
    """Read-only registry of known users and shops."""

    def __init__(
        self,
        users: list[User] | None = None,
        shops: list[Shop] | None = None,
    ):
        self._users = list(users) if users is not None else _default_users()
        self._shops = list(shops) if shops is not None else _default_shops()

    def find_user_by_phone(self, phone: str) -> User:
        """
        Resolve a phone number to a known identity.

        Raises:
            UserNotFoundError: If no user has this phone number.
        """
        for user in self._users:
            if user.phone == phone:
                return user
        raise UserNotFoundError(phone)

    def get_user(self, user_id: str) -> User:
        for user in self._users:
            if user.id == user_id:
                return user
        raise UserNotFoundError(user_id)

    def get_shop(self, shop_id: str) -> Shop:
        """
        Get a shop by ID.

        Raises:
            ShopNotFoundError: If the shop isn't in the catalog.
        """
        for shop in self._shops:
            if shop.id == shop_id:
                return shop
        raise ShopNotFoundError(shop_id)

    def list_shops(self, active_only: bool = False) -> list[Shop]:
        if active_only:
            return [s for s in self._shops if s.is_active]
        return list(self._shops)

    def shops_owned_by(self, user_id: str) -> list[Shop]:
        return [s for s in self._shops if s.owner_id == user_id]

    def owner_of(self, shop_id: str) -> str:
        """Return the user ID of the shop's owner."""
        return self.get_shop(shop_id).owner_id

    def quote(self, shop_id: str, litres: int) -> float:
        """Price of ``litres`` at the shop's current price per litre."""
        return litres * self.get_shop(shop_id).price_per_litre
