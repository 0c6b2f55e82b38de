from sqlalchemy import BigInteger, Column, DateTime, Text

from relaydesk.database import Base


class MessageMapping(Base):
    __tablename__ = "message_mappings"

    # Telegram message ids are only unique within one chat.
    agent_external_id = Column(BigInteger, primary_key=True, autoincrement=False)
    outbound_message_id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    user_name = Column(Text)
    created_at = Column(DateTime(timezone=True))
