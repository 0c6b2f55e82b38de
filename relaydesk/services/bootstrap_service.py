from sqlalchemy.orm import Session

from relaydesk.config import Settings
from relaydesk.logging_config import get_logger
from relaydesk.services.agent_pool import AgentPool

logger = get_logger("bootstrap")


def seed_initial_data(db: Session, pool: AgentPool, config: Settings) -> dict:
    """Add configured admin and agents. Existing rows are left untouched."""
    added = {"admins": 0, "agents": 0}

    if config.admin_id is not None:
        if pool.add_admin(db, config.admin_id).ok:
            added["admins"] += 1
            logger.info(f"Added initial admin: {config.admin_id}")

    for agent in config.initial_agents:
        if pool.add(db, agent.telegram_id, agent.name).ok:
            added["agents"] += 1
            logger.info(f"Added initial agent: {agent.name} ({agent.telegram_id})")

    return added
