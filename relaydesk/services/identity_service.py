from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from relaydesk.models import Agent
from relaydesk.services import directory_store


class SenderKind(str, Enum):
    ADMIN = "admin"
    AGENT = "agent"
    END_USER = "end_user"


@dataclass(frozen=True)
class SenderIdentity:
    kind: SenderKind
    agent: Optional[Agent] = None

    @property
    def is_admin(self) -> bool:
        return self.kind == SenderKind.ADMIN

    @property
    def is_agent(self) -> bool:
        return self.kind == SenderKind.AGENT


def classify(db: Session, external_id: int) -> SenderIdentity:
    """Admin first: an identity that is both admin and agent is never routed."""
    if directory_store.is_admin(db, external_id):
        return SenderIdentity(SenderKind.ADMIN)

    agent = directory_store.get_agent_by_external_id(db, external_id)
    if agent is not None:
        return SenderIdentity(SenderKind.AGENT, agent)

    return SenderIdentity(SenderKind.END_USER)
