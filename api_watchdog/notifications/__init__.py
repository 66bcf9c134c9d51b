"""Telegram notifications and inbound messages."""

from .pairing import render_pairing_qr
from .telegram_bot import Notifier, TelegramChannel, split_telegram_message

__all__ = ["Notifier", "TelegramChannel", "render_pairing_qr", "split_telegram_message"]
