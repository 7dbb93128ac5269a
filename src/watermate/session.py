"""Session and identity gate for watermate."""

import logging
import re
from dataclasses import dataclass

from .catalog import Catalog
from .errors import InvalidCredentialError, NotAuthenticatedError, OperationFailedError
from .models import User
from .state_store import AUTH_KEY, StateStore

logger = logging.getLogger(__name__)

# Demo verification: any four digit code is accepted.
_OTP_PATTERN = re.compile(r"[0-9]{4}")


@dataclass
class LoginResult:
    """Outcome of a login attempt that didn't fail."""

    requires_otp: bool = False
    user: User | None = None


class SessionGate:
    """Holds the acting identity and logs users in by phone + OTP."""

    def __init__(self, catalog: Catalog, store: StateStore | None = None):
        self.catalog = catalog
        self._store = store
        self._user: User | None = None
        self._authenticated = False
        self.load()

    def load(self) -> None:
        """Rehydrate the session saved by a previous run."""
        if self._store is None:
            return
        data = self._store.load(AUTH_KEY)
        if not data or not data.get("user"):
            self._user = None
            self._authenticated = False
            return
        self._user = User.from_dict(data["user"])
        self._authenticated = bool(data.get("is_authenticated", False))

    def _commit(self, user: User | None, authenticated: bool) -> None:
        """Persist the session, then make it current.

        Raises:
            OperationFailedError: If the store can't be written. The current
                session is left unchanged.
        """
        if self._store is not None:
            try:
                self._store.save(
                    AUTH_KEY,
                    {
                        "user": user.to_dict() if user else None,
                        "is_authenticated": authenticated,
                    },
                )
            except OSError as e:
                raise OperationFailedError("save_session", e) from e
        self._user = user
        self._authenticated = authenticated

    @property
    def current_user(self) -> User | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated and self._user is not None

    def require_user(self) -> User:
        """
        Return the logged-in user.

        Raises:
            NotAuthenticatedError: If nobody is logged in.
        """
        if not self.is_authenticated:
            raise NotAuthenticatedError()
        return self._user

    def login(self, phone: str, otp: str | None = None) -> LoginResult:
        """
        Log in by phone number.

        Without an OTP this only checks the phone is known and reports that
        an OTP is required; no session is established.

        Raises:
            UserNotFoundError: If no user has this phone number.
            InvalidCredentialError: If the OTP isn't four digits.
        """
        user = self.catalog.find_user_by_phone(phone)
        if not otp:
            logger.info("OTP requested", extra={"operation": "login", "user_id": user.id})
            return LoginResult(requires_otp=True)
        return LoginResult(user=self._establish(user, otp))

    def verify_otp(self, phone: str, otp: str) -> User:
        """
        Verify an OTP and establish the session.

        Raises:
            UserNotFoundError: If no user has this phone number.
            InvalidCredentialError: If the OTP isn't four digits.
        """
        user = self.catalog.find_user_by_phone(phone)
        return self._establish(user, otp)

    def _establish(self, user: User, otp: str) -> User:
        if not _OTP_PATTERN.fullmatch(otp or ""):
            logger.warning("Rejected OTP", extra={"operation": "login", "user_id": user.id})
            raise InvalidCredentialError(user.phone)
        self._commit(user, True)
        logger.info("Logged in", extra={"operation": "login", "user_id": user.id})
        return user

    def logout(self) -> None:
        """Clear the session."""
        previous = self._user
        self._commit(None, False)
        if previous is not None:
            logger.info("Logged out", extra={"operation": "logout", "user_id": previous.id})
