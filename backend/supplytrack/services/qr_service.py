# Overview: QR artifact rendering and public URLs for scan / verification pages.

from __future__ import annotations

from io import BytesIO

import qrcode
from flask import current_app

# Tracking QR colors match the dashboard's production badge
TRACKING_FILL = "#10B981"
TRACKING_BACK = "#FFFFFF"


def scan_url(product_id: str) -> str:
    """Page used by workers to log checkpoints during production."""
    return f"{current_app.config['PUBLIC_BASE_URL'].rstrip('/')}/scan.html?id={product_id}"


def verification_url(product_id: str) -> str:
    """Public verification page for finalized products."""
    return f"{current_app.config['PUBLIC_BASE_URL'].rstrip('/')}/verify.html?id={product_id}"


def render_png(data: str, *, fill_color: str = TRACKING_FILL, back_color: str = TRACKING_BACK) -> bytes:
    qr = qrcode.QRCode(border=2, box_size=10)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color=fill_color, back_color=back_color)

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
