from enum import Enum

from sqlalchemy import BigInteger, Column, DateTime, Integer, Text

from relaydesk.database import Base


class LogDirection(str, Enum):
    USER_TO_AGENT = "user_to_agent"
    AGENT_TO_USER = "agent_to_user"


class ConversationLog(Base):
    __tablename__ = "conversation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    user_name = Column(Text)
    agent_id = Column(Integer)
    agent_name = Column(Text)
    direction = Column(Text, nullable=False)  # user_to_agent, agent_to_user
    message = Column(Text, nullable=False)
