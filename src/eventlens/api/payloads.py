"""Helpers for decoding request payloads."""

import base64
import binascii

from fastapi import HTTPException, status


def decode_image(data: str) -> bytes:
    """Decode a base64 image, accepting data URLs."""
    _, _, encoded = data.rpartition(",")
    try:
        decoded = base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Images must be base64 encoded.",
        ) from exc
    if not decoded:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Image is empty."
        )
    return decoded
