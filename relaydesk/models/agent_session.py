from sqlalchemy import BigInteger, Column, DateTime, Text

from relaydesk.database import Base


class AgentSession(Base):
    """Last end-user routed to an agent, used when a reply is not threaded."""

    __tablename__ = "agent_sessions"

    agent_external_id = Column(BigInteger, primary_key=True, autoincrement=False)
    current_user_id = Column(BigInteger, nullable=False)
    current_user_name = Column(Text)
    updated_at = Column(DateTime(timezone=True))
