"""Fire-and-forget Telegram notifications.

The notifier is a sink: every failure (missing token, transport error, non-2xx
reply) is logged and swallowed, so a broken bot can never change the HTTP
response the relay returns.
"""

from __future__ import annotations

import logging

import httpx

from imagerelay.core.results import OutcomeStatus, PipelineOutcome

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

# Telegram rejects photo captions longer than this.
MAX_CAPTION_LENGTH = 1024


class TelegramNotifier:
    """Send messages and photos to a chat through the Bot API."""

    def __init__(self, http_client: httpx.AsyncClient, bot_token: str) -> None:
        self._http = http_client
        self._bot_token = bot_token

    @property
    def configured(self) -> bool:
        return bool(self._bot_token)

    async def send_message(self, chat_id: int, text: str) -> bool:
        """Send a text message.  Returns ``True`` if Telegram accepted it."""
        return await self._call("sendMessage", {"chat_id": chat_id, "text": text})

    async def send_photo(self, chat_id: int, photo_url: str, caption: str = "") -> bool:
        """Send a photo by URL with an optional caption."""
        payload = {"chat_id": chat_id, "photo": photo_url}
        if caption:
            payload["caption"] = caption[:MAX_CAPTION_LENGTH]
        return await self._call("sendPhoto", payload)

    async def _call(self, method: str, payload: dict) -> bool:
        if not self.configured:
            logger.warning("Telegram %s skipped: bot token is not configured", method)
            return False

        url = f"{TELEGRAM_API_BASE}/bot{self._bot_token}/{method}"
        try:
            response = await self._http.post(url, json=payload)
        except httpx.HTTPError as exc:
            # The token is part of the URL, so log the exception type only.
            logger.error("Telegram %s failed: %s", method, type(exc).__name__)
            return False

        if response.status_code >= 400:
            logger.error(
                "Telegram %s returned %s: %s", method, response.status_code, response.text
            )
            return False
        return True


ERROR_NOTICE = "Sorry, the image could not be generated right now. Please try again later."


async def relay_outcome(notifier: TelegramNotifier, chat_id: int, outcome: PipelineOutcome) -> None:
    """Tell the originating chat how a request ended.

    Unauthorized outcomes and requests without a chat id are never relayed.
    """
    if not chat_id:
        return

    if outcome.status is OutcomeStatus.SUCCESS and outcome.stored is not None:
        await notifier.send_photo(chat_id, outcome.stored.url, outcome.message)
    elif outcome.status is OutcomeStatus.MODERATED:
        await notifier.send_message(chat_id, f"Your prompt was declined: {outcome.message}")
    elif outcome.status is OutcomeStatus.ERROR:
        await notifier.send_message(chat_id, ERROR_NOTICE)
