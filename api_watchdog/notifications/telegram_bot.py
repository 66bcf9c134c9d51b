"""Telegram channel and administrator fan-out."""

import asyncio
from typing import Awaitable, Callable, Optional, Protocol, Sequence

import structlog

from telegram import Bot
from telegram.error import NetworkError, TelegramError, TimedOut

logger = structlog.get_logger(__name__)

TELEGRAM_MAX_MESSAGE_LEN = 3900

MessageHandler = Callable[[str, str], Awaitable[object]]


class MessageChannel(Protocol):
    async def send(self, address: str, text: str) -> None: ...


def split_telegram_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        parts.append(s[:cut].rstrip())
        s = s[cut:].lstrip()
    return parts


def redact(text: str, secret: Optional[str]) -> str:
    if secret:
        return text.replace(secret, "<redacted>")
    return text


class TelegramChannel:
    """Sends and receives Telegram messages through the Bot API."""

    def __init__(self, bot_token: str, *, poll_timeout: int = 30, retry_delay: float = 5.0):
        """Initialize the channel.

        Args:
            bot_token: Telegram bot token
            poll_timeout: Long-poll timeout passed to getUpdates, in seconds
            retry_delay: Pause after a failed poll before trying again
        """
        self.bot_token = bot_token
        self.bot = Bot(token=bot_token)
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self.running = False
        self._offset: Optional[int] = None

    async def start(self) -> str:
        """Initialize the bot and return the pairing link (``https://t.me/<username>``)."""
        await self.bot.initialize()
        me = await self.bot.get_me()
        link = f"https://t.me/{me.username}"
        logger.info("Telegram channel ready", username=me.username, pairing_link=link)
        return link

    async def stop(self) -> None:
        self.running = False
        await self.bot.shutdown()

    async def send(self, address: str, text: str) -> None:
        for part in split_telegram_message(text):
            await self.bot.send_message(
                chat_id=address,
                text=part,
            )

    async def poll(self, handler: MessageHandler) -> None:
        """Long-poll getUpdates and hand each text message to ``handler``.

        Runs until ``stop()``; errors never end the loop.
        """
        self.running = True
        logger.info("Listening for Telegram messages")
        while self.running:
            try:
                updates = await self.bot.get_updates(
                    offset=self._offset,
                    timeout=self.poll_timeout,
                    allowed_updates=["message"],
                )
            except TimedOut:
                # Normal for long-polling
                continue
            except (NetworkError, TelegramError) as e:
                logger.error("Telegram poll failed", error=redact(str(e), self.bot_token))
                await asyncio.sleep(self.retry_delay)
                continue
            except Exception:
                logger.exception("Unexpected error while polling Telegram")
                await asyncio.sleep(self.retry_delay)
                continue

            for update in updates:
                self._offset = update.update_id + 1
                message = update.message
                if message is None or not message.text:
                    continue
                try:
                    await handler(str(message.chat_id), message.text)
                except Exception:
                    logger.exception("Message handler crashed", chat_id=message.chat_id)


class Notifier:
    """Fans a message out to every administrator."""

    def __init__(self, channel: MessageChannel, roster: Sequence[str]):
        self.channel = channel
        self.roster = tuple(roster)
        if not self.roster:
            logger.warning("Administrator roster is empty; alerts will not be delivered")

    async def broadcast(self, message: str) -> dict[str, bool]:
        """Send ``message`` to each administrator independently.

        Returns:
            Delivery outcome per address. A failure for one address never
            stops delivery to the others.
        """
        results: dict[str, bool] = {}
        for address in self.roster:
            try:
                await self.channel.send(address, message)
                results[address] = True
            except Exception as e:
                logger.error("Failed to notify administrator", chat_id=address, error=str(e))
                results[address] = False

        logger.info(
            "Broadcast sent",
            delivered=sum(results.values()),
            failed=len(results) - sum(results.values()),
        )
        return results
