import html
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from relaydesk.models import ConversationLog, LogDirection

DEFAULT_QUERY_LIMIT = 50


def add_log_entry(
    db: Session,
    *,
    user_id: int,
    user_name: Optional[str],
    agent_id: Optional[int],
    agent_name: Optional[str],
    direction: LogDirection,
    message: str,
) -> ConversationLog:
    """Append a routed message to the audit trail. Entries are never updated."""
    entry = ConversationLog(
        timestamp=datetime.now(timezone.utc),
        user_id=user_id,
        user_name=user_name,
        agent_id=agent_id,
        agent_name=agent_name,
        direction=LogDirection(direction).value,
        message=message,
    )
    db.add(entry)
    db.flush()
    return entry


def query_logs(db: Session, user_id: Optional[int] = None, limit: int = DEFAULT_QUERY_LIMIT) -> list[ConversationLog]:
    """Most recent entries first, optionally for one user."""
    if limit <= 0:
        return []

    query = db.query(ConversationLog)
    if user_id is not None:
        query = query.filter(ConversationLog.user_id == user_id)

    return query.order_by(ConversationLog.timestamp.desc(), ConversationLog.id.desc()).limit(limit).all()


def format_log_line(entry: ConversationLog, max_length: int = 50) -> str:
    """Two-line summary used by the /logs command."""
    message = entry.message or ""
    short = message[:max_length] + "..." if len(message) > max_length else message
    arrow = "→" if entry.direction == LogDirection.USER_TO_AGENT.value else "←"
    time_short = entry.timestamp.strftime("%H:%M") if entry.timestamp else "--:--"
    return f"<code>{time_short}</code> User {entry.user_id} {arrow} Agent {entry.agent_id}\n  {html.escape(short)}"
