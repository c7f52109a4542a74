"""Render protocol QR payloads as PNG data URLs for browser display."""

from __future__ import annotations

import base64
import io
import re

import qrcode


def render_qr_data_url(payload: str) -> str:
    """
    Encode a QR payload as a `data:image/png;base64,...` URL.

    Args:
        payload: Raw challenge string from the protocol session

    Returns:
        Data URL that can be dropped into an <img src>
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def format_pairing_code(raw: str) -> str:
    """Group a numeric pairing code in blocks of four: '12345678' -> '1234-5678'."""
    code = re.sub(r"[^0-9A-Za-z]", "", str(raw))
    if not code:
        return code
    return "-".join(code[i : i + 4] for i in range(0, len(code), 4))
