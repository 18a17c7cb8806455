"""Telegram alert sink."""
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Send liquidation-risk alerts through a Telegram bot."""

    def __init__(self, config: TelegramConfig) -> None:
        self.bot_token = config.bot_token
        self.chat_id = config.chat_id

    async def send_alert(self, message: str, subject: str = "") -> bool:
        if not self.bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        text = f"<b>{subject}</b>\n\n{message}" if subject else message
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(url, json=payload) as response:
                if response.status != 200:
                    logger.error("Failed to send Telegram alert: %s", response.status)
                    return False

        logger.info("Telegram alert sent")
        return True
