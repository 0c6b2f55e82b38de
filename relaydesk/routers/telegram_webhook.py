import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from relaydesk.config import settings
from relaydesk.database import get_db
from relaydesk.dependencies import get_command_handler, get_routing_engine, get_telegram
from relaydesk.logging_config import get_logger
from relaydesk.schemas.telegram import TelegramMessage, TelegramUpdate, TelegramWebhookResponse
from relaydesk.services.command_service import CommandHandler
from relaydesk.services.routing_service import InboundMessage, RoutingEngine
from relaydesk.services.telegram_service import TelegramService

logger = get_logger("telegram_webhook")

router = APIRouter()


async def parse_telegram_update(request: Request) -> Optional[dict]:
    """
    Parse Telegram update with tolerant decoding to avoid utf-8 crashes.
    Returns dict or None.
    """
    try:
        return await request.json()
    except Exception as e:
        logger.warning(f"Standard request.json() failed: {e}, fallback decoding", exc_info=True)

    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            decoded = raw.decode(enc, errors="replace")
            return json.loads(decoded)
        except ValueError:
            continue

    logger.error("Failed to decode Telegram webhook payload after fallbacks")
    return None


def to_inbound_message(message: TelegramMessage) -> InboundMessage:
    reply_to_id = message.reply_to_message.message_id if message.reply_to_message else None
    return InboundMessage(
        sender_id=message.from_user.id,
        first_name=message.from_user.first_name,
        username=message.from_user.username,
        text=message.text if message.text is not None else message.caption,
        voice_file_id=message.voice.file_id if message.voice else None,
        reply_to_message_id=reply_to_id,
    )


@router.post("/telegram-webhook", response_model=TelegramWebhookResponse)
async def handle_telegram_webhook(
    request: Request,
    db: Session = Depends(get_db),
    engine: RoutingEngine = Depends(get_routing_engine),
    commands: CommandHandler = Depends(get_command_handler),
    telegram: TelegramService = Depends(get_telegram),
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
):
    """
    Handle Telegram webhook updates from private chats:
    - /commands -> command handler (admin tools, /start, /myid)
    - text and voice -> routing engine, outcome reported back to the sender
    """
    if settings.webhook_secret and x_telegram_bot_api_secret_token != settings.webhook_secret:
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    try:
        body = await parse_telegram_update(request)
        if body is None:
            return TelegramWebhookResponse(success=False, message="Invalid telegram payload")

        logger.debug(f"Telegram webhook received: {body}")

        update = TelegramUpdate(**body)
        message = update.message

        if message is None or message.from_user is None:
            return TelegramWebhookResponse(success=True, message="No actionable content")

        if message.from_user.is_bot:
            return TelegramWebhookResponse(success=True, message="Ignoring bot message")

        if message.chat.type != "private":
            return TelegramWebhookResponse(success=True, message="Ignoring non-private chat")

        if message.text and message.text.startswith("/"):
            return handle_command(message, db, commands, telegram)

        if not message.text and not message.voice:
            return TelegramWebhookResponse(success=True, message="Unsupported message type")

        return handle_routed_message(message, db, engine, telegram)

    except Exception as e:
        logger.error(f"Telegram webhook error: {e}", exc_info=True)
        return TelegramWebhookResponse(success=False, message=str(e))


def handle_command(
    message: TelegramMessage, db: Session, commands: CommandHandler, telegram: TelegramService
) -> TelegramWebhookResponse:
    reply = commands.handle(db, message.from_user.id, message.text)
    if reply is None:
        return TelegramWebhookResponse(success=True, message="Ignoring unknown command")

    telegram.send_message(chat_id=message.chat.id, text=reply)
    return TelegramWebhookResponse(success=True, message="Command handled")


def handle_routed_message(
    message: TelegramMessage, db: Session, engine: RoutingEngine, telegram: TelegramService
) -> TelegramWebhookResponse:
    result = engine.route(db, to_inbound_message(message))

    notice = result.value.notice if result.ok else result.error
    telegram.send_message(chat_id=message.chat.id, text=notice, parse_mode=None)

    if not result.ok:
        return TelegramWebhookResponse(success=False, message=result.error, error_code=result.error_code)
    return TelegramWebhookResponse(success=True, message=f"Routed from {result.value.sender_kind.value}")
