"""Image intake for meal photos: type checks, normalization and data URIs."""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Raster formats Gemini accepts as inline image parts
SUPPORTED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
}

_MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}


@dataclass(frozen=True)
class MealImage:
    """Encoded still image plus its MIME type, ready to send."""

    data: bytes
    mime_type: str

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.data, self.mime_type)


def normalize_mime_type(mime_type: Optional[str]) -> Optional[str]:
    """Lower-case a MIME type, drop parameters and map common aliases."""
    if not mime_type:
        return None
    normalized = mime_type.split(";", 1)[0].strip().lower()
    return _MIME_ALIASES.get(normalized, normalized)


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode image bytes as a displayable data URI."""
    payload = base64.standard_b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{payload}"


def decode_data_uri(uri: str) -> MealImage:
    """
    Parse a base64 data URI as produced by browser file readers.

    Args:
        uri: String of the form data:<mime>;base64,<payload>

    Returns:
        MealImage with decoded bytes and normalized MIME type

    Raises:
        ValueError: If the URI is not a base64 image data URI
    """
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Expected a base64 data URI")

    mime_type = normalize_mime_type(header[len("data:") : -len(";base64")])
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e

    return MealImage(data=data, mime_type=mime_type or "")


def _invalid_image(mime_type: Optional[str]) -> ValueError:
    return ValueError(
        f"Invalid image type: {mime_type or 'unknown'}. "
        f"Allowed: {sorted(SUPPORTED_MIME_TYPES)}"
    )


def detect_mime_type(data: bytes, mime_type: Optional[str] = None) -> str:
    """
    Work out what a captured photo is without decoding its pixels.

    Declared types Gemini accepts are trusted. Anything else is identified
    from the file header with Pillow.

    Raises:
        ValueError: If the image is empty or not a readable raster image
    """
    if not data:
        raise ValueError("Image is empty")

    normalized = normalize_mime_type(mime_type)
    if normalized in SUPPORTED_MIME_TYPES:
        return normalized

    try:
        # Image.open only parses the header
        with Image.open(io.BytesIO(data)) as img:
            detected = Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError) as e:
        raise _invalid_image(mime_type) from e

    if detected in SUPPORTED_MIME_TYPES:
        logger.debug("Detected %s for image declared as %s", detected, mime_type)
    return detected or "application/octet-stream"


def needs_reencode(mime_type: str) -> bool:
    return mime_type not in SUPPORTED_MIME_TYPES


def load_meal_image(data: bytes, mime_type: Optional[str] = None) -> MealImage:
    """
    Validate a captured meal photo and prepare it for analysis.

    Supported types are passed through untouched; a readable raster in
    another format (GIF, BMP, TIFF...) is re-encoded as PNG rather than
    rejected. Re-encoding decodes the whole image, so async callers run this
    in a worker thread when needs_reencode() is true.

    Args:
        data: Encoded image bytes
        mime_type: MIME type reported by the capture source, if any

    Returns:
        MealImage with a supported MIME type

    Raises:
        ValueError: If the image is empty or not a readable raster image
    """
    source_type = detect_mime_type(data, mime_type)
    if not needs_reencode(source_type):
        return MealImage(data=bytes(data), mime_type=source_type)

    try:
        with Image.open(io.BytesIO(data)) as img:
            # PNG cannot store CMYK, YCbCr etc.
            if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
                img = img.convert("RGB")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
    except (UnidentifiedImageError, OSError) as e:
        raise _invalid_image(mime_type) from e

    logger.info("Re-encoded %s image as PNG for analysis", source_type)
    return MealImage(data=buffer.getvalue(), mime_type="image/png")
