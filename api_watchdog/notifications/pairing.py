"""Renders the bot's pairing link as a QR code."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO

import qrcode
import structlog

from ..event_log import EventLog

logger = structlog.get_logger(__name__)


def render_pairing_qr(
    link: str,
    image_path: str | Path,
    event_log: EventLog,
    *,
    out: Optional[TextIO] = None,
) -> Optional[Path]:
    """Print ``link`` as an ASCII QR code and save it as an image.

    Returns the image path, or None when the image could not be written.
    """
    qr = qrcode.QRCode(border=1)
    qr.add_data(link)
    qr.make(fit=True)

    stream = out or sys.stdout
    stream.write(f"Scan to open the watchdog bot: {link}\n")
    qr.print_ascii(out=stream, invert=True)

    path = Path(image_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        qr.make_image().save(str(path))
    except (OSError, ValueError) as e:
        event_log.record(f"Error saving QR: {e}")
        return None

    logger.info("Pairing QR saved", path=str(path))
    return path
