from __future__ import annotations

import io
from pathlib import Path

from api_watchdog.notifications.pairing import render_pairing_qr

LINK = "https://t.me/test_watchdog_bot"


def test_qr_is_printed_and_saved(tmp_path: Path, event_log) -> None:
    out = io.StringIO()
    target = tmp_path / "images" / "telegram_qr.png"

    saved = render_pairing_qr(LINK, target, event_log, out=out)

    assert saved == target
    assert target.read_bytes().startswith(b"\x89PNG")
    printed = out.getvalue()
    assert LINK in printed
    assert len(printed.splitlines()) > 10


def test_write_error_goes_to_event_log(tmp_path: Path, event_log) -> None:
    blocker = tmp_path / "images"
    blocker.write_text("not a directory")

    saved = render_pairing_qr(LINK, blocker / "telegram_qr.png", event_log, out=io.StringIO())

    assert saved is None
    assert any("Error saving QR" in line for line in event_log.tail())
