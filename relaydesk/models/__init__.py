from relaydesk.models.admin import Admin
from relaydesk.models.agent import Agent
from relaydesk.models.agent_session import AgentSession
from relaydesk.models.conversation_log import ConversationLog, LogDirection
from relaydesk.models.message_mapping import MessageMapping

__all__ = [
    "Admin",
    "Agent",
    "AgentSession",
    "ConversationLog",
    "LogDirection",
    "MessageMapping",
]
