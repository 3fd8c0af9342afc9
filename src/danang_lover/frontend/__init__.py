"""Frontend package for DaNangLover."""

from .app import main
from .components import display_place_map, fetch_and_resize_image, render_image_upload
from .map_sync import FoliumMapView, MapView, MarkerSynchronizer

__all__ = [
    "main",
    "display_place_map",
    "fetch_and_resize_image",
    "render_image_upload",
    "FoliumMapView",
    "MapView",
    "MarkerSynchronizer",
]
