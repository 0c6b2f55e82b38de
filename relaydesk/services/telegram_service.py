import html
from typing import Optional

import httpx

from relaydesk.logging_config import get_logger

logger = get_logger("telegram_service")

# Telegram answers these when the recipient never pressed /start or blocked the bot.
_NOT_STARTED_MARKERS = (
    "bot can't initiate conversation",
    "chat not found",
    "bot was blocked by the user",
    "user is deactivated",
)


class DeliveryError(Exception):
    def __init__(self, description: str, error_code: Optional[int] = None):
        self.description = description
        self.error_code = error_code
        super().__init__(description)

    @property
    def recipient_not_started(self) -> bool:
        """True when the recipient must open a chat with the bot first."""
        lowered = (self.description or "").lower()
        return any(marker in lowered for marker in _NOT_STARTED_MARKERS)


class TelegramService:
    """Service for sending messages to Telegram."""

    BASE_URL = "https://api.telegram.org/bot{token}"
    FILE_URL = "https://api.telegram.org/file/bot{token}/{path}"

    def __init__(self, bot_token: str):
        self.bot_token = bot_token
        self.base_url = self.BASE_URL.format(token=bot_token)

    def _make_request(self, method: str, data: Optional[dict] = None) -> dict:
        """Make request to Telegram API."""
        url = f"{self.base_url}/{method}"
        try:
            with httpx.Client(timeout=30.0) as client:
                response = client.post(url, json=data or {})
                return response.json()
        except Exception as e:
            logger.error(f"Telegram API error: {e}")
            return {"ok": False, "description": str(e)}

    def _require_message_id(self, result: dict) -> int:
        if not result.get("ok"):
            raise DeliveryError(result.get("description") or "Telegram request failed", result.get("error_code"))
        return result["result"]["message_id"]

    def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = "HTML",
        reply_to_message_id: Optional[int] = None,
    ) -> dict:
        """Send message to Telegram chat."""
        data = {
            "chat_id": chat_id,
            "text": text,
        }
        if parse_mode:
            data["parse_mode"] = parse_mode
        if reply_to_message_id:
            data["reply_to_message_id"] = reply_to_message_id

        return self._make_request("sendMessage", data)

    def send_voice_message(
        self,
        chat_id: int,
        voice: str,
        caption: Optional[str] = None,
        parse_mode: Optional[str] = "HTML",
    ) -> dict:
        """Send voice note by file_id or URL."""
        data = {"chat_id": chat_id, "voice": voice}
        if caption:
            data["caption"] = caption
            if parse_mode:
                data["parse_mode"] = parse_mode

        return self._make_request("sendVoice", data)

    def send_text(self, target_id: int, text: str, parse_mode: Optional[str] = None) -> int:
        """Send text and return the new message id. Raises DeliveryError."""
        return self._require_message_id(self.send_message(target_id, text, parse_mode=parse_mode))

    def send_voice(
        self, target_id: int, audio_ref: str, caption: Optional[str] = None, parse_mode: Optional[str] = None
    ) -> int:
        """Send voice and return the new message id. Raises DeliveryError."""
        return self._require_message_id(
            self.send_voice_message(target_id, audio_ref, caption=caption, parse_mode=parse_mode)
        )

    def resolve_file(self, file_id: str) -> str:
        """Return a download URL for a Telegram file_id."""
        result = self._make_request("getFile", {"file_id": file_id})
        if not result.get("ok"):
            raise DeliveryError(result.get("description") or "getFile failed", result.get("error_code"))
        return self.FILE_URL.format(token=self.bot_token, path=result["result"]["file_path"])

    def download_file(self, url: str) -> bytes:
        with httpx.Client(timeout=60.0) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.content

    def set_webhook(self, url: str, secret_token: Optional[str] = None) -> dict:
        data = {"url": url, "allowed_updates": ["message"]}
        if secret_token:
            data["secret_token"] = secret_token
        return self._make_request("setWebhook", data)


def format_user_label(first_name: Optional[str], username: Optional[str]) -> str:
    """Display name stored in sessions and logs: "Ann (@ann)" or "Ann"."""
    name = first_name or "Unknown"
    return f"{name} (@{username})" if username else name


# Telegram limits, counted after entity parsing.
MESSAGE_TEXT_LIMIT = 4096
CAPTION_LIMIT = 1024

FORWARD_BODY_LIMIT = 3800
VOICE_TRANSCRIPT_LIMIT = 600
VOICE_USER_CAPTION_LIMIT = 250


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def format_forward_message(user_id: int, first_name: Optional[str], username: Optional[str], message: str) -> str:
    """Header shown to the agent above a forwarded user message."""
    name = html.escape(first_name or "Unknown")
    handle = f" @{html.escape(username)}" if username else ""

    return f"""📩 <b>New message from user:</b>

👤 User: {name}{handle} (ID: <code>{user_id}</code>)
💬 Message:
{html.escape(truncate(message, FORWARD_BODY_LIMIT))}"""


def format_voice_caption(
    user_id: int,
    first_name: Optional[str],
    username: Optional[str],
    transcript: str,
    user_caption: Optional[str] = None,
) -> str:
    name = html.escape(first_name or "Unknown")
    handle = f" @{html.escape(username)}" if username else ""

    caption = f"""🎤 <b>Voice message from user:</b>

👤 User: {name}{handle} (ID: <code>{user_id}</code>)
📝 {html.escape(truncate(transcript, VOICE_TRANSCRIPT_LIMIT))}"""
    if user_caption:
        caption += f"\n💬 {html.escape(truncate(user_caption, VOICE_USER_CAPTION_LIMIT))}"
    return caption
