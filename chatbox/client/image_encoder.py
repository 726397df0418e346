"""
Image attachment encoder.

Turns a local image into a data URL that can travel inside the JSON request
body and be stored with the user's message.

Dependencies: base64, mimetypes (stdlib)
System role: Image Attachment Encoder
"""

import base64
import mimetypes
from pathlib import Path


def encode_image(data: bytes, mime_type: str) -> str:
    """
    Encode raw image bytes as a data URL.

    Args:
        data: Image bytes
        mime_type: MIME type, must be image/*

    Returns:
        str: "data:<mime>;base64,<payload>"

    Raises:
        ValueError: If the MIME type is not an image type or data is empty
    """
    if not mime_type.startswith("image/"):
        raise ValueError(f"Not an image MIME type: {mime_type}")
    if not data:
        raise ValueError("Image data is empty")
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def encode_image_file(path: str | Path) -> str:
    """
    Read an image file and encode it as a data URL.

    Args:
        path: Image file path; the MIME type is guessed from its name

    Returns:
        str: Data URL

    Raises:
        ValueError: If the file is not recognised as an image
        OSError: If the file cannot be read
    """
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type is None:
        raise ValueError(f"Cannot determine image type of {path.name}")
    return encode_image(path.read_bytes(), mime_type)
