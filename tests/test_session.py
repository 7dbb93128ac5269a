"""Tests for the session gate and catalog lookups."""

import pytest

from watermate.catalog import Catalog
from watermate.errors import (
    InvalidCredentialError,
    NotAuthenticatedError,
    OperationFailedError,
    ShopNotFoundError,
    UserNotFoundError,
)
from watermate.models import UserRole
from watermate.session import SessionGate


class TestLogin:
    def test_unknown_phone_raises(self, catalog, store):
        gate = SessionGate(catalog, store)

        with pytest.raises(UserNotFoundError):
            gate.login("+254799999999")

    def test_without_otp_requires_otp(self, catalog, store):
        gate = SessionGate(catalog, store)

        result = gate.login("+254700000004")

        assert result.requires_otp is True
        assert result.user is None
        assert gate.is_authenticated is False

    def test_any_four_digit_otp_logs_in(self, catalog, store):
        gate = SessionGate(catalog, store)

        result = gate.login("+254700000004", "0000")

        assert result.requires_otp is False
        assert result.user.id == "client-1"
        assert gate.current_user.name == "Peter Kimani"
        assert gate.is_authenticated is True

    @pytest.mark.parametrize("otp", ["123", "12345", "12a4", "1234\n", " 123"])
    def test_malformed_otp_raises(self, catalog, store, otp):
        gate = SessionGate(catalog, store)

        with pytest.raises(InvalidCredentialError):
            gate.login("+254700000004", otp)

        assert gate.is_authenticated is False

    def test_verify_otp(self, catalog, store):
        gate = SessionGate(catalog, store)

        user = gate.verify_otp("+254700000002", "4321")

        assert user.role == UserRole.SHOP
        assert gate.require_user().id == "shop-1"

    def test_verify_otp_rejects_bad_code(self, catalog, store):
        gate = SessionGate(catalog, store)

        with pytest.raises(InvalidCredentialError):
            gate.verify_otp("+254700000002", "12")

    def test_logout_clears_session(self, catalog, store):
        gate = SessionGate(catalog, store)
        gate.login("+254700000001", "1111")

        gate.logout()

        assert gate.current_user is None
        assert gate.is_authenticated is False
        with pytest.raises(NotAuthenticatedError):
            gate.require_user()

    def test_logout_without_session(self, catalog, store):
        gate = SessionGate(catalog, store)
        gate.logout()
        assert gate.is_authenticated is False


class TestRehydration:
    def test_session_survives_restart(self, catalog, store):
        SessionGate(catalog, store).login("+254700000005", "9876")

        restored = SessionGate(catalog, store)

        assert restored.is_authenticated is True
        assert restored.current_user.id == "client-2"

    def test_logout_survives_restart(self, catalog, store):
        gate = SessionGate(catalog, store)
        gate.login("+254700000005", "9876")
        gate.logout()

        assert SessionGate(catalog, store).is_authenticated is False

    def test_failed_login_write_keeps_session_logged_out(self, catalog, store, monkeypatch):
        gate = SessionGate(catalog, store)

        def broken_save(key, data):
            raise OSError("read-only file system")

        monkeypatch.setattr(store, "save", broken_save)

        with pytest.raises(OperationFailedError):
            gate.login("+254700000004", "1234")

        assert gate.current_user is None
        assert gate.is_authenticated is False

    def test_failed_logout_write_keeps_session(self, catalog, store, monkeypatch):
        gate = SessionGate(catalog, store)
        gate.login("+254700000004", "1234")

        def broken_save(key, data):
            raise OSError("read-only file system")

        monkeypatch.setattr(store, "save", broken_save)

        with pytest.raises(OperationFailedError):
            gate.logout()

        assert gate.is_authenticated is True
        assert gate.current_user.id == "client-1"

    def test_without_store_nothing_persists(self, catalog):
        SessionGate(catalog).login("+254700000005", "9876")
        assert SessionGate(catalog).is_authenticated is False


class TestCatalog:
    def test_owner_of(self, catalog):
        assert catalog.owner_of("shop-3") == "shop-1"
        assert [s.id for s in catalog.shops_owned_by("shop-1")] == ["shop-1", "shop-3"]

    def test_quote(self, catalog):
        assert catalog.quote("shop-1", 20) == 100
        assert catalog.quote("shop-3", 10) == 55

    def test_unknown_shop_raises(self, catalog):
        with pytest.raises(ShopNotFoundError):
            catalog.get_shop("shop-404")

    def test_get_user(self, catalog):
        assert catalog.get_user("admin-1").role == UserRole.ADMIN
        with pytest.raises(UserNotFoundError):
            catalog.get_user("ghost")

    def test_list_active_shops(self):
        from watermate.catalog import _default_shops

        shops = _default_shops()
        shops[1].is_active = False
        catalog = Catalog(shops=shops)

        assert [s.id for s in catalog.list_shops(active_only=True)] == ["shop-1", "shop-3"]
        assert len(catalog.list_shops()) == 3
