"""Shared fixtures for the danang_lover tests."""

import copy
from collections.abc import Callable
from typing import Any

import pytest

from danang_lover.backend.service import DaNangLoverService
from danang_lover.config import Settings, StorageSettings
from danang_lover.errors import TransportError
from danang_lover.models import Profile


class InMemoryStorage:
    """Stand-in for AzureStorage keeping collections and uploads in dicts."""

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.files: dict[str, tuple[bytes, str]] = {}

    def load_records(self, collection: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self.collections.get(collection, []))

    def save_records(self, collection: str, records: list[dict[str, Any]]) -> None:
        self.collections[collection] = copy.deepcopy(records)

    def update_records(
        self, collection: str, update: Callable[[list[dict[str, Any]]], Any]
    ) -> Any:
        records = self.load_records(collection)
        result = update(records)
        self.save_records(collection, records)
        return result

    def upload_file(self, path: str, data: bytes, content_type: str) -> str:
        if path in self.files:
            raise TransportError(f"An image already exists at '{path}'.")
        self.files[path] = (data, content_type)
        return f"https://example.blob.core.windows.net/place-images/{path}"


@pytest.fixture
def storage() -> InMemoryStorage:
    """Fixture for an empty in-memory storage backend."""
    return InMemoryStorage()


@pytest.fixture
def settings() -> Settings:
    """Fixture for application settings with a dummy connection string."""
    return Settings(storage=StorageSettings(connection_string="UseDevelopmentStorage=true"))


@pytest.fixture
def service(settings: Settings, storage: InMemoryStorage) -> DaNangLoverService:
    """Fixture for the service backed by in-memory storage."""
    return DaNangLoverService(settings, storage=storage)  # type: ignore[arg-type]


@pytest.fixture
def alice() -> Profile:
    """Fixture for a signed-in user."""
    return Profile(id="alice", email="alice@example.com", full_name="Alice Nguyen")


@pytest.fixture
def bob() -> Profile:
    """Fixture for a second user."""
    return Profile(id="bob", email="bob@example.com", full_name="Bob Tran")
