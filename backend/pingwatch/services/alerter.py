"""Alerter service - notifies monitor owners about auto-stops and expiring certificates."""
import logging
from typing import Optional, Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import Alert, Monitor

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, user_id: int, message: str) -> bool:
        ...


class TelegramNotifier:
    """Sends a message to the owner's Telegram chat. Best effort, never raises."""

    def __init__(
        self,
        bot_token: Optional[str] = settings.telegram_bot_token,
        api_url: str = settings.telegram_api_url,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _redact(self, text: str) -> str:
        if self.bot_token:
            return text.replace(self.bot_token, "<redacted>")
        return text

    async def notify(self, user_id: int, message: str) -> bool:
        if not self.bot_token:
            logger.warning(f"No Telegram bot token configured, dropping notification for user {user_id}")
            return False

        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": user_id, "text": message, "parse_mode": "Markdown"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
            if response.status_code < 400:
                logger.info(f"Notification sent to user {user_id}")
                return True
            logger.warning(f"Telegram returned {response.status_code} for user {user_id}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to notify user {user_id}: {self._redact(str(e))}")
            return False


def auto_stop_message(url: str, fail_limit: int) -> str:
    return (
        "❌ **Auto-Stopped Pinging** ❌\n\n"
        f"Your URL has been automatically stopped after {fail_limit} consecutive failures.\n\n"
        f"🔗 **URL:** {url}"
    )


def ssl_warning_message(url: str, days_remaining: int) -> str:
    return (
        "🔔 **SSL Warning** 🔔\n\n"
        f"The SSL certificate for `{url}` expires in *{days_remaining} days*!"
    )


class AlerterService:
    """Builds owner notifications and records every attempt as an Alert row."""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or TelegramNotifier()

    async def _send(
        self,
        session: AsyncSession,
        monitor_id: int,
        user_id: int,
        alert_type: str,
        message: str,
    ) -> bool:
        try:
            success = await self.notifier.notify(user_id, message)
        except Exception as e:
            # Delivery is best effort; a broken channel must not fail the tick
            logger.error(f"Notifier error for monitor {monitor_id}: {e}")
            success = False

        session.add(Alert(
            monitor_id=monitor_id,
            user_id=user_id,
            alert_type=alert_type,
            message=message,
            success=1 if success else 0,
        ))
        return success

    async def send_auto_stop(self, session: AsyncSession, monitor_id: int, user_id: int, url: str, fail_limit: int) -> bool:
        """Tell the owner their monitor was deactivated after repeated failures."""
        return await self._send(session, monitor_id, user_id, "auto_stop", auto_stop_message(url, fail_limit))

    async def send_ssl_warning(self, session: AsyncSession, monitor: Monitor, days_remaining: int) -> bool:
        """Send an SSL expiry warning to the monitor's owner."""
        return await self._send(
            session,
            monitor.id,
            monitor.user_id,
            "ssl_expiring",
            ssl_warning_message(monitor.url, days_remaining),
        )


# Global instance
alerter_service = AlerterService()
