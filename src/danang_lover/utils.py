"""Utility functions for the danang_lover package."""

import secrets
import string
import time
from pathlib import PurePosixPath

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits

PRICE_LABELS = {1: "$", 2: "$$", 3: "$$$"}


def build_upload_path(
    user_id: str,
    filename: str,
    timestamp_ms: int | None = None,
    token: str | None = None,
) -> str:
    """Build a unique storage path for an uploaded file.

    Paths follow ``<user_id>/<epoch_ms>-<token>.<ext>`` so that every user
    owns a folder and two uploads never collide, even within the same
    millisecond.

    Args:
        user_id: Id of the uploading user.
        filename: Original file name, used only for its extension.
        timestamp_ms: Upload time in epoch milliseconds. Defaults to now.
        token: Random suffix. Defaults to 13 random base36 characters.

    Returns:
        The blob path for the upload.
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    if token is None:
        token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(13))

    suffix = PurePosixPath(filename).suffix.lower()
    return f"{user_id}/{timestamp_ms}-{token}{suffix}"


def price_label(price_range: int) -> str:
    """Return the dollar-sign label for a price tier.

    Args:
        price_range: Tier from 1 to 3.

    Returns:
        "$", "$$" or "$$$".

    Raises:
        ValueError: If the tier is out of range.
    """
    try:
        return PRICE_LABELS[price_range]
    except KeyError:
        raise ValueError(f"Unknown price range: {price_range}") from None


def parse_coordinates(input_str: str) -> tuple[float, float]:
    """Parse a ``"lat, lng"`` string into a tuple of floats.

    Args:
        input_str: A string containing comma-separated latitude and longitude.

    Returns:
        tuple[float, float]: The parsed (lat, lng).

    Raises:
        ValueError: If the string is malformed or the values are out of range.
    """
    parts = input_str.split(",")
    if len(parts) != 2:
        raise ValueError("Exactly two comma-separated values required.")
    lat = float(parts[0].strip())
    lng = float(parts[1].strip())
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise ValueError("Coordinates out of range.")
    return lat, lng
