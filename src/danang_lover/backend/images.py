"""Image preprocessing for uploads.

Uploaded pictures are checked, turned upright according to their EXIF
orientation, downscaled so that their longer side fits a bounding dimension,
and re-encoded in their original format before they are handed to storage.
Images are never upscaled and keep their aspect ratio to within one pixel of
rounding.
"""

import logging
from fractions import Fraction
from io import BytesIO
from math import floor

from PIL import Image, ImageOps, UnidentifiedImageError

from danang_lover.errors import DecodeError, EncodeError, ValidationError
from danang_lover.models import ImageAsset

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_QUALITY = 90

# Formats where the encoder honours a quality setting.
LOSSY_FORMATS = frozenset({"JPEG", "WEBP"})

# Modes each format can store without conversion.
_STORABLE_MODES = {
    "JPEG": ("L", "RGB", "CMYK"),
    "WEBP": ("RGB", "RGBA"),
}

_MIME_ALIASES = {
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/x-png": "PNG",
}


def validate_upload(
    filename: str,
    content_type: str,
    size: int,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """Check that a selected file may enter the upload pipeline.

    Args:
        filename: Name of the selected file, used in error messages.
        content_type: Declared MIME type of the file.
        size: Byte length of the file.
        max_bytes: Largest accepted byte length.

    Raises:
        ValidationError: With ``check="type"`` for non-image files, or
            ``check="size"`` for files above ``max_bytes``.
    """
    if not (content_type or "").startswith("image/"):
        raise ValidationError("type", f"'{filename}' is not an image file.")
    if size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ValidationError(
            "size",
            f"'{filename}' is too large. Please upload an image smaller than {limit_mb:g}MB.",
        )


def compute_target_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Compute output dimensions bounded by ``max_dimension``.

    The longer side is scaled to exactly ``max_dimension`` and the shorter one
    proportionally, rounding half up. Images already within the bound keep
    their size.

    Args:
        width: Source width in pixels.
        height: Source height in pixels.
        max_dimension: Bound for the longer side.

    Returns:
        The (width, height) to render at.

    Raises:
        ValueError: If any argument is not positive.
    """
    if width <= 0 or height <= 0 or max_dimension <= 0:
        raise ValueError("Dimensions must be positive.")

    if max(width, height) <= max_dimension:
        return width, height

    def scale(side: int, longer: int) -> int:
        # Exact rational arithmetic so ties always round up.
        return max(1, floor(Fraction(side * max_dimension, longer) + Fraction(1, 2)))

    if width >= height:
        return max_dimension, scale(height, width)
    return scale(width, height), max_dimension


def format_for_mime(content_type: str) -> str:
    """Return the Pillow format name that encodes ``content_type``.

    Args:
        content_type: MIME type such as "image/jpeg".

    Returns:
        The Pillow format name, e.g. "JPEG".

    Raises:
        EncodeError: If no installed encoder handles the MIME type.
    """
    mime = content_type.split(";")[0].strip().lower()
    if mime in _MIME_ALIASES:
        return _MIME_ALIASES[mime]

    Image.init()
    for fmt, registered in Image.MIME.items():
        if registered == mime and fmt in Image.SAVE:
            return fmt
    raise EncodeError(f"No encoder available for '{content_type}'.")


def _prepare_for_format(image: Image.Image, fmt: str) -> Image.Image:
    allowed = _STORABLE_MODES.get(fmt)
    if allowed is None or image.mode in allowed:
        return image
    has_alpha = "A" in image.getbands() or "transparency" in image.info
    target_mode = "RGBA" if has_alpha and "RGBA" in allowed else "RGB"
    return image.convert(target_mode)


def _encode(image: Image.Image, fmt: str, quality: int) -> bytes:
    params: dict[str, int] = {}
    if fmt in LOSSY_FORMATS:
        params["quality"] = quality

    buffer = BytesIO()
    try:
        image.save(buffer, format=fmt, **params)
    except (OSError, ValueError, KeyError) as exception:
        raise EncodeError(f"Could not encode image as {fmt}: {exception}") from exception
    return buffer.getvalue()


def preprocess_image(
    data: bytes,
    content_type: str,
    max_dimension: int,
    quality: int = DEFAULT_QUALITY,
    filename: str = "image",
) -> ImageAsset:
    """Decode, downscale and re-encode an image.

    Args:
        data: Raw bytes of the selected file.
        content_type: Declared MIME type; the output uses the same type.
        max_dimension: Bound for the longer side of the output.
        quality: Encoder quality for lossy formats, ignored otherwise.
        filename: Original file name, carried through to the result.

    Returns:
        ImageAsset: The source and encoded image with both sets of dimensions.

    Raises:
        DecodeError: If the bytes are not a readable image.
        EncodeError: If the output format cannot be produced.
    """
    try:
        image = Image.open(BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exception:
        raise DecodeError(f"Could not read image '{filename}': {exception}") from exception

    with image:
        try:
            image.load()
        except (Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exception:
            raise DecodeError(f"Could not read image '{filename}': {exception}") from exception

        fmt = format_for_mime(content_type)
        # Sizes are taken as displayed, after the EXIF orientation is applied.
        with ImageOps.exif_transpose(image) as upright:
            natural_width, natural_height = upright.size
            target = compute_target_size(natural_width, natural_height, max_dimension)

            if target == upright.size:
                surface = upright.copy()
            else:
                surface = upright.resize(target, Image.Resampling.LANCZOS)

        with surface:
            prepared = _prepare_for_format(surface, fmt)
            try:
                encoded = _encode(prepared, fmt, quality)
            finally:
                if prepared is not surface:
                    prepared.close()

    logger.info(
        "Preprocessed '%s': %dx%d -> %dx%d (%s, %d -> %d bytes)",
        filename,
        natural_width,
        natural_height,
        target[0],
        target[1],
        fmt,
        len(data),
        len(encoded),
    )

    return ImageAsset(
        filename=filename,
        content_type=content_type,
        source=data,
        natural_width=natural_width,
        natural_height=natural_height,
        target_width=target[0],
        target_height=target[1],
        encoded=encoded,
    )
