"""Wires the catalog, state store and ledgers together."""

from .catalog import Catalog
from .config import Settings
from .notification_ledger import NotificationLedger
from .order_ledger import OrderLedger
from .session import SessionGate
from .state_store import MemoryStateStore, StateStore


class Marketplace:
    """One set of ledgers sharing a catalog and a state store.

    Without a store, state lives in a ``MemoryStateStore`` for the lifetime
    of the instance.
    """

    def __init__(
        self,
        store: StateStore | None = None,
        catalog: Catalog | None = None,
        strict_transitions: bool = False,
    ):
        store = store if store is not None else MemoryStateStore()
        self.store = store
        self.catalog = catalog or Catalog()
        self.notifications = NotificationLedger(store)
        self.orders = OrderLedger(
            self.catalog,
            self.notifications,
            store,
            strict_transitions=strict_transitions,
        )
        self.session = SessionGate(self.catalog, store)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Marketplace":
        """Build a marketplace backed by the data directory in ``settings``."""
        settings = settings or Settings.from_env()
        return cls(
            store=StateStore(settings.data_dir),
            strict_transitions=settings.strict_transitions,
        )
