import io
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from VistoriaAPI.constants import ALLOWED_PHOTO_TYPES, PHOTO_MAX_SIZE, PHOTO_WEBP_QUALITY
from VistoriaAPI.errors import InvalidInputError


def is_allowed_photo_type(content_type: Optional[str]) -> bool:
    return (content_type or "").lower() in ALLOWED_PHOTO_TYPES


def _to_webp_bytes(img: Image.Image, quality: int = PHOTO_WEBP_QUALITY) -> bytes:
    buf = io.BytesIO()
    # WebP supports RGB and RGBA only
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    img.save(buf, format="WEBP", quality=quality)
    return buf.getvalue()


def prepare_photo(content: bytes) -> bytes:
    """
    Normalize an uploaded photo for storage.

    - Apply the EXIF orientation so the pixels are upright.
    - Shrink to fit within PHOTO_MAX_SIZE, keeping the aspect ratio and never enlarging.
    - Re-encode as WebP.

    Raises:
        InvalidInputError: If the payload is not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(content))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidInputError("Uploaded file is not a valid image") from exc

    img = ImageOps.exif_transpose(img)
    img.thumbnail(PHOTO_MAX_SIZE)
    return _to_webp_bytes(img)
