"""Unit tests for the Telegram alert sink."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lending_client.config import TelegramConfig
from lending_client.notifications.telegram import TelegramNotifier


@pytest.fixture()
def telegram_notifier() -> TelegramNotifier:
    return TelegramNotifier(TelegramConfig(enabled=True, bot_token="alert-tok", chat_id="12345"))


def _mock_session(status: int) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_send_alert_success(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(200)

        with patch(
            "lending_client.notifications.telegram.aiohttp.ClientSession",
            return_value=mock_session,
        ):
            with patch("lending_client.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert("HF 0.91", subject="Liquidatable")

        assert result is True
        url = mock_session.post.call_args.args[0]
        payload = mock_session.post.call_args.kwargs["json"]
        assert url == "https://api.telegram.org/botalert-tok/sendMessage"
        assert payload["chat_id"] == "12345"
        assert payload["text"].startswith("<b>Liquidatable</b>")
        assert "HF 0.91" in payload["text"]

    @pytest.mark.asyncio
    async def test_send_alert_without_subject(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(200)

        with patch(
            "lending_client.notifications.telegram.aiohttp.ClientSession",
            return_value=mock_session,
        ):
            with patch("lending_client.notifications.telegram.aiohttp.TCPConnector"):
                await telegram_notifier.send_alert("plain")

        assert mock_session.post.call_args.kwargs["json"]["text"] == "plain"

    @pytest.mark.asyncio
    async def test_send_alert_failure(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(403)

        with patch(
            "lending_client.notifications.telegram.aiohttp.ClientSession",
            return_value=mock_session,
        ):
            with patch("lending_client.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert("test alert")

        assert result is False

    @pytest.mark.asyncio
    async def test_unconfigured_returns_false(self) -> None:
        notifier = TelegramNotifier(TelegramConfig(enabled=True))
        with patch("lending_client.notifications.telegram.aiohttp.ClientSession") as session_cls:
            assert await notifier.send_alert("test") is False
        session_cls.assert_not_called()
