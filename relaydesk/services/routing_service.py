"""Routing engine: decides the counterparty of every inbound message.

End-user messages go to the single active agent. Agent messages go back to an
end-user, resolved from the message the agent replied to (MessageMapping) or,
failing that, from the agent's last session. Correlation state and the
conversation log are written only after the transport confirmed delivery.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from relaydesk.database import atomic
from relaydesk.logging_config import LoggerAdapter, get_logger
from relaydesk.models import Agent, LogDirection
from relaydesk.services import directory_store
from relaydesk.services.agent_pool import AgentPool
from relaydesk.services.conversation_log_service import add_log_entry
from relaydesk.services.identity_service import SenderKind, classify
from relaydesk.services.result import ErrorCode, Result
from relaydesk.services.telegram_service import (
    DeliveryError,
    TelegramService,
    format_forward_message,
    format_user_label,
    format_voice_caption,
)
from relaydesk.services.transcription_service import TranscriptionService

logger = get_logger("routing_service")

VOICE_TRANSCRIPTION_PLACEHOLDER = "[Voice message - transcription unavailable]"
VOICE_LOG_PREFIX = "[Voice] "
AGENT_VOICE_LOG_TEXT = "[Voice reply]"

ADMIN_NOTICE = "ℹ️ As an admin, your messages aren't routed. Use /start for commands."
USER_RECEIVED_NOTICE = "✅ Your message has been received. An agent will respond shortly."
NO_AGENT_AVAILABLE_TEXT = "Sorry, no support agents are available right now. Please try again later."
AGENT_NOT_REACHABLE_TEXT = (
    "Sorry, the support agent can't receive messages yet: they need to open a chat with this bot first. "
    "Please try again later."
)
USER_DELIVERY_FAILED_TEXT = "Sorry, there was an error sending your message. Please try again."
NO_REPLY_TARGET_TEXT = "❌ No user to reply to. Wait for a user message first."
AGENT_OFFLINE_TEXT = "❌ You are offline, so replies are not delivered. Ask an admin to set you active."


@dataclass
class InboundMessage:
    sender_id: int
    first_name: Optional[str] = None
    username: Optional[str] = None
    text: Optional[str] = None
    voice_file_id: Optional[str] = None
    reply_to_message_id: Optional[int] = None

    @property
    def is_voice(self) -> bool:
        return bool(self.voice_file_id)


@dataclass
class ReplyTarget:
    user_id: int
    user_name: Optional[str]
    source: str  # mapping, session


@dataclass
class RouteOutcome:
    sender_kind: SenderKind
    notice: str
    target_id: Optional[int] = None
    outbound_message_id: Optional[int] = None
    logged_text: Optional[str] = None


class RoutingEngine:
    def __init__(
        self,
        pool: AgentPool,
        transport: TelegramService,
        transcriber: Optional[TranscriptionService] = None,
    ):
        self.pool = pool
        self.transport = transport
        self.transcriber = transcriber

    def route(self, db: Session, message: InboundMessage) -> Result[RouteOutcome]:
        identity = classify(db, message.sender_id)

        if identity.kind == SenderKind.ADMIN:
            return Result.success(RouteOutcome(sender_kind=SenderKind.ADMIN, notice=ADMIN_NOTICE))
        if identity.kind == SenderKind.AGENT:
            return self.route_agent_reply(db, identity.agent, message)
        return self.route_user_message(db, message)

    def resolve_reply_target(
        self, db: Session, agent: Agent, reply_to_message_id: Optional[int]
    ) -> Optional[ReplyTarget]:
        """Threaded reply first, then the agent's last session."""
        if reply_to_message_id is not None:
            mapping = directory_store.get_message_mapping(db, agent.external_id, reply_to_message_id)
            if mapping is not None:
                return ReplyTarget(mapping.user_id, mapping.user_name, "mapping")

        session = directory_store.get_agent_session(db, agent.external_id)
        if session is not None:
            return ReplyTarget(session.current_user_id, session.current_user_name, "session")

        return None

    def route_agent_reply(self, db: Session, agent: Agent, message: InboundMessage) -> Result[RouteOutcome]:
        log = LoggerAdapter(logger, {"agent_id": agent.id, "sender_id": message.sender_id})

        target = self.resolve_reply_target(db, agent, message.reply_to_message_id)
        if target is None:
            log.info("Agent reply has no target")
            return Result.failure(NO_REPLY_TARGET_TEXT, ErrorCode.NO_REPLY_TARGET)

        if not agent.is_active:
            log.info("Agent reply rejected: agent offline")
            return Result.failure(AGENT_OFFLINE_TEXT, ErrorCode.AGENT_OFFLINE)

        agent_id, agent_name = agent.id, agent.name
        try:
            if message.is_voice:
                outbound_id = self.transport.send_voice(
                    target.user_id, message.voice_file_id, caption=message.text, parse_mode=None
                )
                logged_text = AGENT_VOICE_LOG_TEXT
                if message.text:
                    logged_text = f"{AGENT_VOICE_LOG_TEXT} {message.text}"
            else:
                outbound_id = self.transport.send_text(target.user_id, message.text or "")
                logged_text = message.text or ""
        except DeliveryError as e:
            log.warning(f"Agent reply delivery failed: {e.description}", context={"target_id": target.user_id})
            return Result.failure(f"❌ Failed to send: {e.description}", ErrorCode.DELIVERY_FAILED)

        with self.pool.lock, atomic(db):
            add_log_entry(
                db,
                user_id=target.user_id,
                user_name=target.user_name or "User",
                agent_id=agent_id,
                agent_name=agent_name,
                direction=LogDirection.AGENT_TO_USER,
                message=logged_text,
            )

        log.info(
            "Agent reply delivered",
            context={"target_id": target.user_id, "resolved_by": target.source},
        )
        return Result.success(
            RouteOutcome(
                sender_kind=SenderKind.AGENT,
                notice=f"✅ Reply sent to {target.user_name or target.user_id}",
                target_id=target.user_id,
                outbound_message_id=outbound_id,
                logged_text=logged_text,
            )
        )

    def route_user_message(self, db: Session, message: InboundMessage) -> Result[RouteOutcome]:
        log = LoggerAdapter(logger, {"sender_id": message.sender_id})

        agent = self.pool.get_active(db)
        if agent is None:
            log.info("No active agent for user message")
            return Result.failure(NO_AGENT_AVAILABLE_TEXT, ErrorCode.NO_AGENT_AVAILABLE)

        agent_id, agent_name, agent_external_id = agent.id, agent.name, agent.external_id
        user_label = format_user_label(message.first_name, message.username)

        try:
            if message.is_voice:
                transcript = self.transcribe_voice(message.voice_file_id)
                caption = format_voice_caption(
                    message.sender_id,
                    message.first_name,
                    message.username,
                    transcript or VOICE_TRANSCRIPTION_PLACEHOLDER,
                    user_caption=message.text,
                )
                outbound_id = self.transport.send_voice(
                    agent_external_id, message.voice_file_id, caption=caption, parse_mode="HTML"
                )
                logged_text = f"{VOICE_LOG_PREFIX}{transcript}" if transcript else VOICE_TRANSCRIPTION_PLACEHOLDER
                if message.text:
                    logged_text = f"{logged_text} {message.text}"
            else:
                text = format_forward_message(message.sender_id, message.first_name, message.username, message.text or "")
                outbound_id = self.transport.send_text(agent_external_id, text, parse_mode="HTML")
                logged_text = message.text or ""
        except DeliveryError as e:
            log.warning(
                f"Forward to agent failed: {e.description}",
                context={"agent_id": agent_id, "error_code": e.error_code},
            )
            if e.recipient_not_started:
                return Result.failure(AGENT_NOT_REACHABLE_TEXT, ErrorCode.AGENT_NOT_REACHABLE)
            return Result.failure(USER_DELIVERY_FAILED_TEXT, ErrorCode.DELIVERY_FAILED)

        with self.pool.lock, atomic(db):
            directory_store.put_message_mapping(db, agent_external_id, outbound_id, message.sender_id, user_label)
            directory_store.set_agent_session(db, agent_external_id, message.sender_id, user_label)
            add_log_entry(
                db,
                user_id=message.sender_id,
                user_name=user_label,
                agent_id=agent_id,
                agent_name=agent_name,
                direction=LogDirection.USER_TO_AGENT,
                message=logged_text,
            )

        log.info("User message forwarded", context={"agent_id": agent_id, "outbound_message_id": outbound_id})
        return Result.success(
            RouteOutcome(
                sender_kind=SenderKind.END_USER,
                notice=USER_RECEIVED_NOTICE,
                target_id=agent_external_id,
                outbound_message_id=outbound_id,
                logged_text=logged_text,
            )
        )

    def transcribe_voice(self, file_id: str) -> Optional[str]:
        """Best-effort transcript; None means use the placeholder."""
        if self.transcriber is None:
            return None
        try:
            url = self.transport.resolve_file(file_id)
            audio = self.transport.download_file(url)
            return self.transcriber.transcribe(audio, filename="voice.ogg", mime_type="audio/ogg")
        except Exception as e:
            # Never blocks delivery of the audio itself.
            logger.warning(
                f"Voice transcription failed: {e}",
                extra={"context": {"error_code": ErrorCode.TRANSCRIPTION_FAILED.value}},
            )
            return None
