"""Admin API: agents, admins, conversation logs.

Mutations go through the same AgentPool instance the bot uses.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from relaydesk.config import settings
from relaydesk.database import get_db
from relaydesk.dependencies import get_agent_pool
from relaydesk.schemas.admin import (
    ActionResponse,
    AdminCreate,
    AgentCreate,
    AgentListResponse,
    AgentOut,
    LogEntryOut,
    PruneResponse,
)
from relaydesk.services import directory_store
from relaydesk.services.agent_pool import AgentPool
from relaydesk.services.conversation_log_service import query_logs
from relaydesk.services.result import ErrorCode, Result

MAX_LOGS_LIMIT = 500


def _require_admin_token(x_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = settings.admin_api_token
    if not expected:
        return
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


router = APIRouter(prefix="/api", tags=["admin"], dependencies=[Depends(_require_admin_token)])


def _action_response(result: Result, message: str) -> ActionResponse:
    if result.ok:
        return ActionResponse(success=True, message=message)
    if result.error_code == ErrorCode.NOT_FOUND.value:
        raise HTTPException(status_code=404, detail=result.error)
    return ActionResponse(success=False, message=result.error)


# === AGENTS ===


@router.get("/agents")
def list_agents(db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)) -> AgentListResponse:
    agents = pool.list_agents(db)
    active = pool.get_active(db)
    return AgentListResponse(
        agents=[AgentOut(id=a.id, telegram_id=a.external_id, name=a.name, is_active=a.is_active) for a in agents],
        active_agent_id=active.id if active else None,
    )


@router.post("/agents")
def add_agent(
    data: AgentCreate, db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)
) -> ActionResponse:
    name = (data.name or "").strip()
    if data.telegram_id is None or not name:
        raise HTTPException(status_code=400, detail="telegram_id and name required")

    result = pool.add(db, data.telegram_id, name)
    return _action_response(result, "Agent added")


@router.post("/agents/{agent_id}/activate")
def activate_agent(
    agent_id: int, db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)
) -> ActionResponse:
    result = pool.activate(db, agent_id)
    message = f"Agent '{result.value.name}' is now active" if result.ok else ""
    return _action_response(result, message)


@router.post("/agents/{agent_id}/deactivate")
def deactivate_agent(
    agent_id: int, db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)
) -> ActionResponse:
    result = pool.deactivate(db, agent_id)
    message = f"Agent '{result.value.name}' is now offline" if result.ok else ""
    return _action_response(result, message)


@router.delete("/agents/{agent_id}")
def remove_agent(
    agent_id: int, db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)
) -> ActionResponse:
    result = pool.remove(db, agent_id)
    return _action_response(result, "Agent removed successfully")


# === LOGS ===


@router.get("/logs")
def get_logs(
    user_id: Optional[int] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_LOGS_LIMIT),
    db: Session = Depends(get_db),
) -> list[LogEntryOut]:
    entries = query_logs(db, user_id=user_id, limit=limit or settings.api_logs_page_size)
    return [LogEntryOut.model_validate(entry) for entry in entries]


# === ADMINS ===


@router.get("/admins")
def list_admins(db: Session = Depends(get_db)) -> list[int]:
    return directory_store.list_admins(db)


@router.post("/admins")
def add_admin(
    data: AdminCreate, db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)
) -> ActionResponse:
    if data.telegram_id is None:
        raise HTTPException(status_code=400, detail="telegram_id required")
    result = pool.add_admin(db, data.telegram_id)
    return _action_response(result, "Admin added")


@router.delete("/admins/{telegram_id}")
def remove_admin(
    telegram_id: int, db: Session = Depends(get_db), pool: AgentPool = Depends(get_agent_pool)
) -> ActionResponse:
    result = pool.remove_admin(db, telegram_id)
    return _action_response(result, "Admin removed")


# === MAINTENANCE ===


@router.post("/maintenance/prune-mappings")
def prune_mappings(
    ttl_days: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    pool: AgentPool = Depends(get_agent_pool),
) -> PruneResponse:
    ttl = ttl_days or settings.mapping_retention_days
    if not ttl:
        raise HTTPException(status_code=400, detail="ttl_days required (mapping_retention_days not configured)")
    deleted = pool.prune_mappings(db, ttl)
    return PruneResponse(ttl_days=ttl, deleted=deleted)
