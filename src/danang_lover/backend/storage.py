"""Storage backend for the DaNangLover application.

This module provides the AzureStorage class which handles all interactions
with Azure Blob Storage: the JSON record collections (places, reviews, blog
posts, profiles) and the public image uploads.
"""

import json
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.storage.blob import BlobServiceClient, ContentSettings

from danang_lover.config import StorageSettings
from danang_lover.errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AzureStorage:
    """Handles interactions with Azure Blob Storage.

    Records live as JSON arrays in ``container_name`` under ``data_prefix``.
    Images go to ``image_container_name``, which is expected to allow public
    blob reads so that the blob URL can be shown directly.
    """

    def __init__(self, settings: StorageSettings) -> None:
        """Initialize the storage client.

        Args:
            settings: StorageSettings configuration object containing
                connection string and container names.
        """
        self.settings = settings
        try:
            self.blob_service_client = BlobServiceClient.from_connection_string(
                self.settings.connection_string
            )
            self.container_client = self.blob_service_client.get_container_client(
                container=self.settings.container_name
            )
            self.image_container_client = self.blob_service_client.get_container_client(
                container=self.settings.image_container_name
            )
        except Exception as exception:
            logger.error(f"Failed to initialize Azure Storage client: {exception}")
            raise

    def download_blob(self, blob_name: str) -> bytes:
        """Download a blob from the records container.

        Args:
            blob_name: Name of the blob to download.

        Returns:
            The content of the blob as bytes.

        Raises:
            ResourceNotFoundError: If the blob does not exist.
            TransportError: On any other storage failure.
        """
        try:
            return self.container_client.download_blob(blob_name).readall()
        except ResourceNotFoundError:
            logger.warning(f"Blob '{blob_name}' not found.")
            raise
        except AzureError as exception:
            logger.error(f"Error downloading blob '{blob_name}': {exception}")
            raise TransportError(f"Could not download '{blob_name}'.") from exception

    def upload_blob(self, blob_name: str, data: str | bytes, overwrite: bool = True) -> None:
        """Upload data to a blob in the records container.

        Args:
            blob_name: Name of the destination blob.
            data: Data to upload (can be string or bytes).
            overwrite: Whether to overwrite the existing blob if it exists. Defaults to True.

        Raises:
            TransportError: If the upload fails.
        """
        try:
            blob_client = self.container_client.get_blob_client(blob=blob_name)
            blob_client.upload_blob(data, overwrite=overwrite)
            logger.info(f"Successfully uploaded blob '{blob_name}'.")
        except AzureError as exception:
            logger.error(f"Error uploading blob '{blob_name}': {exception}")
            raise TransportError(f"Could not upload '{blob_name}'.") from exception

    def upload_file(self, path: str, data: bytes, content_type: str) -> str:
        """Upload an image and return its public URL.

        Existing blobs are never overwritten; callers pick unique paths.

        Args:
            path: Destination blob path inside the image container.
            data: Encoded file content.
            content_type: MIME type stored with the blob.

        Returns:
            The public URL of the uploaded blob.

        Raises:
            TransportError: If the blob exists already or the upload fails.
        """
        blob_client = self.image_container_client.get_blob_client(blob=path)
        try:
            blob_client.upload_blob(
                data,
                overwrite=False,
                content_settings=ContentSettings(
                    content_type=content_type,
                    cache_control=self.settings.cache_control,
                ),
            )
        except ResourceExistsError as exception:
            logger.error(f"Refusing to overwrite existing image '{path}'.")
            raise TransportError(f"An image already exists at '{path}'.") from exception
        except AzureError as exception:
            logger.error(f"Error uploading image '{path}': {exception}")
            raise TransportError(f"Could not upload image '{path}'.") from exception

        logger.info(f"Uploaded image '{path}' ({len(data)} bytes).")
        return str(blob_client.url)

    def _collection_blob(self, collection: str) -> str:
        return f"{self.settings.data_prefix}/{collection}.json"

    def _parse_records(self, collection: str, data: bytes) -> list[dict[str, Any]]:
        try:
            records = json.loads(data)
        except ValueError as exception:
            logger.error(f"Collection '{collection}' is not valid JSON: {exception}")
            raise TransportError(f"Collection '{collection}' is corrupt.") from exception

        if not isinstance(records, list):
            raise TransportError(f"Collection '{collection}' is not a list of records.")
        return records

    def load_records(self, collection: str) -> list[dict[str, Any]]:
        """Load a JSON record collection.

        Args:
            collection: Collection name, e.g. "places" or "saved/<user_id>".

        Returns:
            The stored records, or an empty list if the collection does not exist yet.

        Raises:
            TransportError: If the collection cannot be read or is not a JSON array.
        """
        try:
            data = self.download_blob(self._collection_blob(collection))
        except ResourceNotFoundError:
            return []
        return self._parse_records(collection, data)

    def save_records(self, collection: str, records: list[dict[str, Any]]) -> None:
        """Persist a JSON record collection, replacing the stored version.

        Args:
            collection: Collection name.
            records: JSON-compatible records.
        """
        self.upload_blob(self._collection_blob(collection), json.dumps(records))

    def update_records(
        self, collection: str, update: Callable[[list[dict[str, Any]]], T]
    ) -> T:
        """Apply ``update`` to a collection and write it back if nobody else did.

        The collection is read together with its ETag and written with an
        If-Match condition, or with no overwrite when it did not exist yet.
        When another writer got in between, the read and ``update`` are
        repeated on the fresh records.

        Args:
            collection: Collection name.
            update: Mutates the records in place; its return value is passed
                through. Exceptions it raises abort the update unwritten.

        Returns:
            Whatever ``update`` returned on the attempt that was written.

        Raises:
            TransportError: If the collection kept changing on every attempt,
                or the storage call failed.
        """
        blob_name = self._collection_blob(collection)
        blob_client = self.container_client.get_blob_client(blob=blob_name)

        for attempt in range(1, self.settings.write_attempts + 1):
            try:
                downloader = self.container_client.download_blob(blob_name)
                records = self._parse_records(collection, downloader.readall())
                etag: str | None = downloader.properties.etag
            except ResourceNotFoundError:
                records, etag = [], None
            except AzureError as exception:
                logger.error(f"Error downloading blob '{blob_name}': {exception}")
                raise TransportError(f"Could not download '{blob_name}'.") from exception

            result = update(records)

            try:
                if etag is None:
                    blob_client.upload_blob(json.dumps(records), overwrite=False)
                else:
                    blob_client.upload_blob(
                        json.dumps(records),
                        overwrite=True,
                        etag=etag,
                        match_condition=MatchConditions.IfNotModified,
                    )
            except (ResourceModifiedError, ResourceExistsError):
                logger.warning(
                    f"Collection '{collection}' changed during update "
                    f"(attempt {attempt}/{self.settings.write_attempts})"
                )
                continue
            except AzureError as exception:
                logger.error(f"Error uploading blob '{blob_name}': {exception}")
                raise TransportError(f"Could not upload '{blob_name}'.") from exception
            return result

        raise TransportError(
            f"Collection '{collection}' is being changed by someone else, please try again."
        )
