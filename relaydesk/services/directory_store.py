"""Persistence for agents, admins, sessions, message mappings.

Functions here only add/flush; callers decide where the transaction ends
(see ``relaydesk.database.atomic``).
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from relaydesk.models import Admin, Agent, AgentSession, MessageMapping


# === ADMINS ===


def is_admin(db: Session, external_id: int) -> bool:
    return db.query(Admin).filter(Admin.external_id == external_id).first() is not None


def add_admin(db: Session, external_id: int) -> bool:
    """Insert admin. Returns False if already present."""
    if is_admin(db, external_id):
        return False
    db.add(Admin(external_id=external_id, created_at=datetime.now(timezone.utc)))
    db.flush()
    return True


def remove_admin(db: Session, external_id: int) -> bool:
    deleted = db.query(Admin).filter(Admin.external_id == external_id).delete(synchronize_session=False)
    db.flush()
    return deleted > 0


def list_admins(db: Session) -> list[int]:
    return [row.external_id for row in db.query(Admin).order_by(Admin.external_id).all()]


# === AGENTS ===


def get_agent(db: Session, agent_id: int) -> Optional[Agent]:
    return db.query(Agent).filter(Agent.id == agent_id).first()


def get_agent_by_external_id(db: Session, external_id: int) -> Optional[Agent]:
    return db.query(Agent).filter(Agent.external_id == external_id).first()


def list_agents(db: Session) -> list[Agent]:
    return db.query(Agent).order_by(Agent.id).all()


def get_active_agent(db: Session) -> Optional[Agent]:
    return db.query(Agent).filter(Agent.is_active.is_(True)).order_by(Agent.id).first()


def add_agent(db: Session, external_id: int, name: str) -> Optional[Agent]:
    """Insert inactive agent. Returns None if the external id is taken."""
    if get_agent_by_external_id(db, external_id):
        return None
    agent = Agent(
        external_id=external_id,
        name=name,
        is_active=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(agent)
    db.flush()
    return agent


def set_only_active(db: Session, agent: Agent) -> None:
    """Clear is_active everywhere, then set it on ``agent``."""
    db.execute(update(Agent).values(is_active=False))
    db.execute(update(Agent).where(Agent.id == agent.id).values(is_active=True))
    db.flush()
    db.expire_all()


def set_inactive(db: Session, agent: Agent) -> None:
    agent.is_active = False
    db.flush()


def delete_agent_cascade(db: Session, agent: Agent) -> None:
    """Delete agent plus its session, its message mappings and any admin row with the same identity."""
    external_id = agent.external_id
    db.query(MessageMapping).filter(MessageMapping.agent_external_id == external_id).delete(
        synchronize_session=False
    )
    db.query(AgentSession).filter(AgentSession.agent_external_id == external_id).delete(
        synchronize_session=False
    )
    db.query(Admin).filter(Admin.external_id == external_id).delete(synchronize_session=False)
    db.delete(agent)
    db.flush()


# === SESSIONS ===


def get_agent_session(db: Session, agent_external_id: int) -> Optional[AgentSession]:
    return db.query(AgentSession).filter(AgentSession.agent_external_id == agent_external_id).first()


def set_agent_session(db: Session, agent_external_id: int, user_id: int, user_name: Optional[str]) -> AgentSession:
    """Overwrite the agent's session with this user."""
    session = get_agent_session(db, agent_external_id)
    if session is None:
        session = AgentSession(agent_external_id=agent_external_id)
        db.add(session)
    session.current_user_id = user_id
    session.current_user_name = user_name
    session.updated_at = datetime.now(timezone.utc)
    db.flush()
    return session


# === MESSAGE MAPPINGS ===


def get_message_mapping(db: Session, agent_external_id: int, outbound_message_id: int) -> Optional[MessageMapping]:
    return (
        db.query(MessageMapping)
        .filter(
            MessageMapping.agent_external_id == agent_external_id,
            MessageMapping.outbound_message_id == outbound_message_id,
        )
        .first()
    )


def put_message_mapping(
    db: Session,
    agent_external_id: int,
    outbound_message_id: int,
    user_id: int,
    user_name: Optional[str],
) -> MessageMapping:
    """Insert or replace the mapping for a forwarded message."""
    mapping = get_message_mapping(db, agent_external_id, outbound_message_id)
    if mapping is None:
        mapping = MessageMapping(agent_external_id=agent_external_id, outbound_message_id=outbound_message_id)
        db.add(mapping)
    mapping.user_id = user_id
    mapping.user_name = user_name
    mapping.created_at = datetime.now(timezone.utc)
    db.flush()
    return mapping


def prune_message_mappings(db: Session, older_than: datetime) -> int:
    deleted = (
        db.query(MessageMapping)
        .filter(MessageMapping.created_at < older_than)
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted
