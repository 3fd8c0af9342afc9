"""Tests for the authentication context."""

import pytest

from danang_lover.auth import AuthContext, AuthEvent, Session, StorageAuthClient
from danang_lover.errors import AuthenticationError

from conftest import InMemoryStorage


@pytest.fixture
def client(storage: InMemoryStorage) -> StorageAuthClient:
    """Fixture for an auth client over in-memory storage."""
    return StorageAuthClient(storage)  # type: ignore[arg-type]


@pytest.fixture
def auth(client: StorageAuthClient) -> AuthContext:
    """Fixture for a started auth context."""
    context = AuthContext(client)
    context.start()
    return context


class TestStorageAuthClient:
    """Tests for email/password accounts."""

    def test_sign_up_creates_account_and_profile(
        self, client: StorageAuthClient, storage: InMemoryStorage
    ) -> None:
        session = client.sign_up("Linh@Example.com", "secret123", full_name="Linh Pham")

        assert session.user.email == "linh@example.com"
        assert session.user.username == "linh"
        (account,) = storage.collections["accounts"]
        assert account["email"] == "linh@example.com"
        assert set(account) == {"id", "email", "password_hash"}
        assert account["password_hash"].startswith("$pbkdf2-sha256$")
        assert "secret123" not in account["password_hash"]
        assert storage.collections["profiles"][0]["full_name"] == "Linh Pham"

    def test_sign_in_with_correct_password(self, client: StorageAuthClient) -> None:
        user = client.sign_up("linh@example.com", "secret123").user
        client.sign_out()

        session = client.sign_in("linh@example.com", "secret123")
        assert session.user.id == user.id

    def test_sign_in_with_wrong_password(self, client: StorageAuthClient) -> None:
        client.sign_up("linh@example.com", "secret123")
        client.sign_out()

        with pytest.raises(AuthenticationError):
            client.sign_in("linh@example.com", "wrong-password")
        assert client.get_session() is None

    def test_duplicate_email_rejected(self, client: StorageAuthClient) -> None:
        client.sign_up("linh@example.com", "secret123")
        with pytest.raises(AuthenticationError):
            client.sign_up("LINH@example.com", "another1")

    def test_short_password_rejected(self, client: StorageAuthClient) -> None:
        with pytest.raises(AuthenticationError):
            client.sign_up("linh@example.com", "123")

    def test_listeners_notified(self, client: StorageAuthClient) -> None:
        events: list[tuple[AuthEvent, Session | None]] = []
        unsubscribe = client.on_auth_state_change(lambda e, s: events.append((e, s)))

        client.sign_up("linh@example.com", "secret123")
        client.sign_out()
        unsubscribe()
        client.sign_in("linh@example.com", "secret123")

        assert [event for event, _ in events] == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]
        assert events[1][1] is None


class TestAuthContext:
    """Tests for the explicit auth context."""

    def test_starts_signed_out(self, auth: AuthContext) -> None:
        assert not auth.loading
        assert auth.user is None
        with pytest.raises(AuthenticationError):
            auth.require_user()

    def test_follows_client_changes(self, auth: AuthContext) -> None:
        user = auth.sign_up("linh@example.com", "secret123", "Linh Pham")

        assert auth.require_user() == user
        assert auth.pop_event() is AuthEvent.SIGNED_IN
        assert auth.pop_event() is None

        auth.sign_out()
        assert auth.user is None
        assert auth.pop_event() is AuthEvent.SIGNED_OUT

    def test_picks_up_existing_session(self, client: StorageAuthClient) -> None:
        client.sign_up("linh@example.com", "secret123")
        context = AuthContext(client)
        context.start()

        assert context.user is not None
        assert context.user.email == "linh@example.com"

    def test_close_unsubscribes(self, auth: AuthContext, client: StorageAuthClient) -> None:
        auth.close()
        assert not auth.started

        client.sign_up("linh@example.com", "secret123")
        assert auth.user is None

    def test_refresh_user(self, auth: AuthContext) -> None:
        user = auth.sign_up("linh@example.com", "secret123")
        auth.refresh_user(user.model_copy(update={"full_name": "Linh P."}))

        assert auth.require_user().full_name == "Linh P."
        assert auth.pop_event() is AuthEvent.USER_UPDATED
