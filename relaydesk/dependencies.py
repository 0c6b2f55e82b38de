from fastapi import Request

from relaydesk.services.agent_pool import AgentPool
from relaydesk.services.command_service import CommandHandler
from relaydesk.services.routing_service import RoutingEngine
from relaydesk.services.telegram_service import TelegramService


def get_agent_pool(request: Request) -> AgentPool:
    return request.app.state.agent_pool


def get_routing_engine(request: Request) -> RoutingEngine:
    return request.app.state.routing_engine


def get_command_handler(request: Request) -> CommandHandler:
    return request.app.state.command_handler


def get_telegram(request: Request) -> TelegramService:
    return request.app.state.telegram
