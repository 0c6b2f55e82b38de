import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from relaydesk.database import atomic
from relaydesk.logging_config import get_logger
from relaydesk.models import Agent
from relaydesk.services import directory_store
from relaydesk.services.result import ErrorCode, Result

logger = get_logger("agent_pool")


class AgentPool:
    """Owns the active-agent flag and every routing-state write.

    One instance is built at startup and shared by the bot and the admin API.
    ``lock`` serializes writes coming from FastAPI's worker threads.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()

    def add(self, db: Session, external_id: int, name: str) -> Result[Agent]:
        with self.lock, atomic(db):
            agent = directory_store.add_agent(db, external_id, name)
        if agent is None:
            return Result.failure("Agent already exists", ErrorCode.ALREADY_EXISTS)
        logger.info(f"Agent added: id={agent.id}, external_id={external_id}")
        return Result.success(agent)

    def activate(self, db: Session, agent_id: int) -> Result[Agent]:
        with self.lock, atomic(db):
            agent = directory_store.get_agent(db, agent_id)
            if agent is None:
                return Result.failure("Agent not found", ErrorCode.NOT_FOUND)
            directory_store.set_only_active(db, agent)
        logger.info(f"Agent {agent_id} is now active")
        return Result.success(agent)

    def deactivate(self, db: Session, agent_id: int) -> Result[Agent]:
        with self.lock, atomic(db):
            agent = directory_store.get_agent(db, agent_id)
            if agent is None:
                return Result.failure("Agent not found", ErrorCode.NOT_FOUND)
            directory_store.set_inactive(db, agent)
        logger.info(f"Agent {agent_id} is now offline")
        return Result.success(agent)

    def remove(self, db: Session, agent_id: int) -> Result[str]:
        """Returns the removed agent's name."""
        with self.lock, atomic(db):
            agent = directory_store.get_agent(db, agent_id)
            if agent is None:
                return Result.failure("Agent not found", ErrorCode.NOT_FOUND)
            name = agent.name
            directory_store.delete_agent_cascade(db, agent)
        logger.info(f"Agent {agent_id} removed with session and admin entry")
        return Result.success(name)

    def get_active(self, db: Session) -> Optional[Agent]:
        return directory_store.get_active_agent(db)

    def list_agents(self, db: Session) -> list[Agent]:
        return directory_store.list_agents(db)

    def add_admin(self, db: Session, external_id: int) -> Result[int]:
        with self.lock, atomic(db):
            added = directory_store.add_admin(db, external_id)
        if not added:
            return Result.failure("Admin already exists", ErrorCode.ALREADY_EXISTS)
        return Result.success(external_id)

    def remove_admin(self, db: Session, external_id: int) -> Result[int]:
        with self.lock, atomic(db):
            removed = directory_store.remove_admin(db, external_id)
        if not removed:
            return Result.failure("Admin not found", ErrorCode.NOT_FOUND)
        return Result.success(external_id)

    def prune_mappings(self, db: Session, ttl_days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=ttl_days)
        with self.lock, atomic(db):
            deleted = directory_store.prune_message_mappings(db, cutoff)
        logger.info(f"Pruned {deleted} message mappings older than {ttl_days} days")
        return deleted
