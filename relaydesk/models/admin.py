from sqlalchemy import BigInteger, Column, DateTime

from relaydesk.database import Base


class Admin(Base):
    __tablename__ = "admins"

    external_id = Column(BigInteger, primary_key=True, autoincrement=False)
    created_at = Column(DateTime(timezone=True))
