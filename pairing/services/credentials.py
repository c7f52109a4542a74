"""
Credential export envelope.

Session credential files are flattened to {name: content}, JSON-encoded,
base64-encoded and prefixed with a fixed tag. The envelope is opaque to
callers; the only contract is that decode_credentials reverses it.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping

EXPORT_TAG = "Mercedes~"


def encode_credentials(blobs: Mapping[str, str]) -> str:
    """
    Pack named credential blobs into the tagged base64 envelope.

    Raises:
        TypeError: If a blob is not a string
    """
    for name, content in blobs.items():
        if not isinstance(content, str):
            raise TypeError(f"Credential blob {name!r} must be str, got {type(content).__name__}")
    payload = json.dumps(dict(blobs)).encode("utf-8")
    return EXPORT_TAG + base64.b64encode(payload).decode("ascii")


def decode_credentials(export: str) -> dict[str, str]:
    """
    Recover the named blobs from an envelope produced by encode_credentials.

    Raises:
        ValueError: If the tag is missing or the payload is not valid
    """
    if not export.startswith(EXPORT_TAG):
        raise ValueError("Missing credential export tag")
    try:
        payload = base64.b64decode(export[len(EXPORT_TAG) :], validate=True)
        state = json.loads(payload.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Malformed credential export") from exc
    if not isinstance(state, dict):
        raise ValueError("Malformed credential export")
    return state
