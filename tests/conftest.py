"""Pytest fixtures for watermate tests."""

import tempfile
from pathlib import Path

import pytest

from watermate.catalog import Catalog
from watermate.marketplace import Marketplace
from watermate.models import Location, OrderDraft, PaymentMethod
from watermate.state_store import StateStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    """A StateStore writing into a temporary data directory."""
    return StateStore(temp_dir / "data")


@pytest.fixture
def catalog():
    return Catalog()


@pytest.fixture
def market(store):
    """A marketplace with empty ledgers backed by a temporary store."""
    return Marketplace(store=store)


def make_draft(**overrides) -> OrderDraft:
    """Build an order for Peter Kimani at Pure Water Westlands (KES 5/L)."""
    fields = dict(
        client_id="client-1",
        shop_id="shop-1",
        litres=20,
        delivery_location=Location(-1.2921, 36.787, "Kilimani Area, Nairobi"),
        payment_method=PaymentMethod.MPESA,
        client_name="Peter Kimani",
        client_phone="+254700000004",
    )
    fields.update(overrides)
    return OrderDraft(**fields)
