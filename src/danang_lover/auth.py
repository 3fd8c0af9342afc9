"""Authentication state for the DaNangLover application.

Auth state is held in an explicit ``AuthContext`` rather than a module-level
store. The context subscribes to an ``AuthClient`` when started and
unsubscribes when closed; the Streamlit app keeps one context per browser
session.
"""

import logging
import secrets
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from passlib.context import CryptContext
from pydantic import BaseModel, Field

from danang_lover.backend.storage import AzureStorage
from danang_lover.errors import AuthenticationError
from danang_lover.models import Profile

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AuthEvent(str, Enum):
    """Auth state transitions reported to listeners."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


class Session(BaseModel):
    """A signed-in session."""

    user: Profile
    access_token: str = Field(default_factory=lambda: secrets.token_urlsafe(32), repr=False)


AuthListener = Callable[[AuthEvent, Session | None], None]


class AuthClient(Protocol):
    """Authentication backend consumed by ``AuthContext``."""

    def get_session(self) -> Session | None: ...

    def sign_in(self, email: str, password: str) -> Session: ...

    def sign_up(self, email: str, password: str, full_name: str = "") -> Session: ...

    def sign_out(self) -> None: ...

    def update_user(self, profile: Profile) -> None: ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]: ...


class StorageAuthClient:
    """Email/password accounts kept in the storage backend.

    Account records (email and a passlib password hash) live in the
    ``accounts`` collection; the matching public profile is written to
    ``profiles`` on sign-up. Each instance tracks one session, so the app
    creates one client per browser session.
    """

    ACCOUNTS = "accounts"
    PROFILES = "profiles"

    def __init__(self, storage: AzureStorage) -> None:
        self.storage = storage
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

    def _notify(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self._session)

    def _load_profile(self, user_id: str, email: str) -> Profile:
        for record in self.storage.load_records(self.PROFILES):
            if record.get("id") == user_id:
                return Profile.model_validate(record)
        return Profile(id=user_id, email=email, username=email.split("@")[0])

    def get_session(self) -> Session | None:
        return self._session

    def sign_in(self, email: str, password: str) -> Session:
        email = email.strip().lower()
        for account in self.storage.load_records(self.ACCOUNTS):
            if account["email"] != email:
                continue
            if pwd_context.verify(password, account["password_hash"]):
                self._session = Session(user=self._load_profile(account["id"], email))
                logger.info("User %s signed in", account["id"])
                self._notify(AuthEvent.SIGNED_IN)
                return self._session
            break
        logger.warning("Failed sign-in attempt for %s", email)
        raise AuthenticationError("Invalid email or password.")

    def sign_up(self, email: str, password: str, full_name: str = "") -> Session:
        email = email.strip().lower()
        if "@" not in email:
            raise AuthenticationError("Please enter a valid email address.")
        if len(password) < 6:
            raise AuthenticationError("Password must be at least 6 characters.")

        profile = Profile(email=email, full_name=full_name, username=email.split("@")[0])
        password_hash = pwd_context.hash(password)

        def add_account(accounts: list[dict[str, Any]]) -> None:
            if any(account["email"] == email for account in accounts):
                raise AuthenticationError("An account with this email already exists.")
            accounts.append({"id": profile.id, "email": email, "password_hash": password_hash})

        self.storage.update_records(self.ACCOUNTS, add_account)
        self.storage.update_records(
            self.PROFILES, lambda profiles: profiles.append(profile.model_dump(mode="json"))
        )

        logger.info("Created account %s", profile.id)
        self._session = Session(user=profile)
        self._notify(AuthEvent.SIGNED_IN)
        return self._session

    def sign_out(self) -> None:
        if self._session is None:
            return
        logger.info("User %s signed out", self._session.user.id)
        self._session = None
        self._notify(AuthEvent.SIGNED_OUT)

    def update_user(self, profile: Profile) -> None:
        if self._session is None or self._session.user.id != profile.id:
            return
        self._session = self._session.model_copy(update={"user": profile})
        self._notify(AuthEvent.USER_UPDATED)

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class AuthContext:
    """Current user and session, passed explicitly to pages and handlers.

    Attributes:
        client: The authentication backend.
        session: The active session, if any.
        loading: True until ``start`` has read the initial session.
    """

    def __init__(self, client: AuthClient) -> None:
        self.client = client
        self.session: Session | None = None
        self.loading = True
        self.last_event: AuthEvent | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def user(self) -> Profile | None:
        """Return the signed-in user's profile, or None."""
        return self.session.user if self.session else None

    @property
    def started(self) -> bool:
        """Return True while subscribed to the client."""
        return self._unsubscribe is not None

    def _on_change(self, event: AuthEvent, session: Session | None) -> None:
        self.session = session
        self.last_event = event

    def start(self) -> None:
        """Subscribe to auth changes, then read the existing session."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.client.on_auth_state_change(self._on_change)
        self.session = self.client.get_session()
        self.loading = False

    def close(self) -> None:
        """Unsubscribe from auth changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def require_user(self) -> Profile:
        """Return the signed-in user.

        Raises:
            AuthenticationError: If nobody is signed in.
        """
        if self.user is None:
            raise AuthenticationError("You must be logged in to do that.")
        return self.user

    def sign_in(self, email: str, password: str) -> Profile:
        return self.client.sign_in(email, password).user

    def sign_up(self, email: str, password: str, full_name: str = "") -> Profile:
        return self.client.sign_up(email, password, full_name).user

    def sign_out(self) -> None:
        self.client.sign_out()

    def refresh_user(self, profile: Profile) -> None:
        """Replace the session's profile after the user edited it."""
        self.client.update_user(profile)

    def pop_event(self) -> AuthEvent | None:
        """Return and clear the last auth event, for one-shot notifications."""
        event, self.last_event = self.last_event, None
        return event
