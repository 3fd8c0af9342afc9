"""Place discovery and review application for Da Nang."""

from .auth import AuthContext, StorageAuthClient
from .backend.images import compute_target_size, preprocess_image, validate_upload
from .backend.service import DaNangLoverService
from .backend.storage import AzureStorage
from .config import ImageSettings, MapSettings, Settings, StorageSettings, get_settings
from .frontend.app import main
from .frontend.map_sync import FoliumMapView, MarkerSynchronizer
from .logger import configure_logging
from .models import BlogPost, ImageAsset, Location, Place, Profile, Review

__all__ = [
    "AuthContext",
    "AzureStorage",
    "BlogPost",
    "DaNangLoverService",
    "FoliumMapView",
    "ImageAsset",
    "ImageSettings",
    "Location",
    "MapSettings",
    "MarkerSynchronizer",
    "Place",
    "Profile",
    "Review",
    "Settings",
    "StorageAuthClient",
    "StorageSettings",
    "compute_target_size",
    "configure_logging",
    "get_settings",
    "main",
    "preprocess_image",
    "validate_upload",
]
