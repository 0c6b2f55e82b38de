from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, Text

from relaydesk.database import Base


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(BigInteger, unique=True, nullable=False)  # telegram user id
    name = Column(Text, nullable=False)
    # At most one row is true; AgentPool owns this flag.
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True))
