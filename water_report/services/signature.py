from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Union

from PIL import Image, ImageChops, UnidentifiedImageError

from ..errors import SignatureCaptureError

"""Signature capture: drawn image -> trimmed PNG data URL.

A drawing surface yields either a transparent canvas with dark strokes or an
opaque image on a white background. Both are trimmed to the bounding box of the
strokes before encoding, so the stored data URL only holds the signature itself.
"""

__all__ = [
    "SignatureSource",
    "load_signature_image",
    "trim_to_content",
    "to_data_url",
    "signature_data_url",
    "is_data_url",
]

SignatureSource = Union[Image.Image, bytes, Path, str]

DATA_URL_PREFIX = "data:image/png;base64,"


def load_signature_image(source: SignatureSource) -> Image.Image:
    """Open a signature from an Image, raw bytes, a file path or a PNG data URL."""
    try:
        if isinstance(source, Image.Image):
            return source
        if isinstance(source, bytes):
            return Image.open(io.BytesIO(source))
        if isinstance(source, str) and is_data_url(source):
            return Image.open(io.BytesIO(base64.b64decode(source.split(",", 1)[1])))
        return Image.open(Path(source))
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise SignatureCaptureError(f"cannot read signature image: {e}") from e


def trim_to_content(image: Image.Image) -> Image.Image:
    """Crop ``image`` to the bounding box of its strokes.

    Raises:
        SignatureCaptureError: nothing was drawn
    """
    rgba = image.convert("RGBA")
    alpha = rgba.getchannel("A")
    if alpha.getextrema()[0] < 255:
        # 透過キャンバス: 不透明ピクセルがストローク
        bbox = alpha.getbbox()
    else:
        # 白背景: 背景色との差分がストローク
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        bbox = ImageChops.difference(rgba.convert("RGB"), background).getbbox()
    if bbox is None:
        raise SignatureCaptureError("signature pad is empty")
    return rgba.crop(bbox)


def to_data_url(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"{DATA_URL_PREFIX}{encoded}"


def signature_data_url(source: SignatureSource) -> str:
    return to_data_url(trim_to_content(load_signature_image(source)))


def is_data_url(value: object) -> bool:
    return isinstance(value, str) and value.startswith("data:image/")
