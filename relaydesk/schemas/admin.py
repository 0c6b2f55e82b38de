from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AgentCreate(BaseModel):
    telegram_id: Optional[int] = None
    name: Optional[str] = None


class AdminCreate(BaseModel):
    telegram_id: Optional[int] = None


class AgentOut(BaseModel):
    id: int
    telegram_id: int
    name: str
    is_active: bool


class AgentListResponse(BaseModel):
    agents: list[AgentOut]
    active_agent_id: Optional[int] = None


class ActionResponse(BaseModel):
    success: bool
    message: str


class LogEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    timestamp: datetime
    user_id: int
    user_name: Optional[str] = None
    agent_id: Optional[int] = None
    agent_name: Optional[str] = None
    direction: str
    message: str


class PruneResponse(BaseModel):
    ttl_days: int
    deleted: int
