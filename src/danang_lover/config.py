"""Configuration settings for the DaNangLover application.

This module defines the configuration settings for the DaNangLover application,
including storage connection details, image upload limits and map defaults. It
uses Pydantic's BaseSettings for environment variable management.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseModel):
    """Azure Blob Storage connection details.

    Attributes:
        connection_string: The connection string for the Azure Blob Storage account.
        container_name: The container holding data collections.
        image_container_name: The public container receiving uploaded images.
        data_prefix: Blob name prefix for the JSON record collections.
        cache_control: Cache-Control header applied to uploaded images.
        write_attempts: Tries per conditional collection update before giving up.
    """

    connection_string: str = Field(..., description="Azure Blob Storage connection string")
    container_name: str = Field("dananglover", description="Container name for records")
    image_container_name: str = Field("place-images", description="Container name for images")
    data_prefix: str = Field("data", description="Blob prefix for record collections")
    cache_control: str = Field("max-age=3600", description="Cache-Control for uploaded images")
    write_attempts: int = Field(3, ge=1, description="Tries per conditional collection update")


class ImageSettings(BaseModel):
    """Settings for the image upload pipeline.

    Attributes:
        max_upload_bytes: Largest accepted source file, in bytes.
        max_dimension: Bounding size in pixels for the longer image side.
        quality: Re-encode quality for lossy formats (1-100).
    """

    max_upload_bytes: int = Field(5 * 1024 * 1024, gt=0, description="Upload size ceiling")
    max_dimension: int = Field(1280, gt=0, description="Longest side after resize, in pixels")
    quality: int = Field(90, ge=1, le=100, description="Lossy encoder quality")

    @computed_field
    def max_upload_megabytes(self) -> float:
        """Return the upload ceiling in megabytes, for display.

        Returns:
            The size ceiling in MiB.
        """
        return self.max_upload_bytes / (1024 * 1024)


class MapSettings(BaseModel):
    """Map defaults.

    Attributes:
        center_lat: Initial map latitude (Da Nang).
        center_lng: Initial map longitude (Da Nang).
        zoom: Initial zoom level.
        height: Rendered map height in pixels.
        tiles_url: Tile URL template.
        tiles_attribution: Attribution shown for the tiles.
    """

    center_lat: float = Field(16.047079, ge=-90.0, le=90.0)
    center_lng: float = Field(108.20623, ge=-180.0, le=180.0)
    zoom: int = Field(12, ge=0, le=20)
    height: int = Field(400, gt=0)
    tiles_url: str = Field("OpenStreetMap", description="Folium tiles name or URL template")
    tiles_attribution: str | None = Field(None, description="Attribution for custom tiles")


class LoggingSettings(BaseModel):
    """Logging configuration settings.

    Attributes:
        level: The logging level (e.g., INFO, DEBUG).
        format: The log message format string.
    """

    level: str = Field("INFO", description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )


class Settings(BaseSettings):
    """Global application settings.

    This class loads settings from environment variables and provides a structured
    access to them.

    Attributes:
        storage: Storage configuration settings.
        images: Image upload configuration settings.
        map: Map configuration settings.
        logging: Logging configuration settings.
    """

    storage: StorageSettings
    images: ImageSettings = Field(default_factory=ImageSettings)
    map: MapSettings = Field(default_factory=MapSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the settings.

    Returns:
        The global Settings instance.
    """
    return Settings()
