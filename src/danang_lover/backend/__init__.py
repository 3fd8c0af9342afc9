"""Backend package for DaNangLover."""

from .images import compute_target_size, preprocess_image, validate_upload
from .service import DaNangLoverService
from .storage import AzureStorage

__all__ = [
    "AzureStorage",
    "DaNangLoverService",
    "compute_target_size",
    "preprocess_image",
    "validate_upload",
]
