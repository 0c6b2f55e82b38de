import html
from typing import Callable, Optional

from sqlalchemy.orm import Session

from relaydesk.config import settings
from relaydesk.logging_config import get_logger
from relaydesk.services import directory_store
from relaydesk.services.agent_pool import AgentPool
from relaydesk.services.conversation_log_service import format_log_line, query_logs
from relaydesk.services.identity_service import SenderKind, classify

logger = get_logger("command_service")

ADMIN_ONLY_TEXT = "❌ Admin only command."

ADMIN_HELP_TEXT = """🔧 <b>Admin Commands:</b>

<b>Agent Management:</b>
• /addagent &lt;telegram_id&gt; &lt;name&gt; - Add new agent
• /removeagent &lt;id&gt; - Remove agent
• /setactive &lt;id&gt; - Set agent as active
• /setoffline &lt;id&gt; - Set agent offline
• /agents - List all agents

<b>Admin Management:</b>
• /addadmin &lt;telegram_id&gt; - Add new admin
• /removeadmin &lt;telegram_id&gt; - Remove admin
• /admins - List all admins

<b>Logs:</b>
• /logs - View recent conversations
• /logs &lt;user_id&gt; - View specific user's conversations

<b>Info:</b>
• /myid - Get your Telegram ID"""

USER_WELCOME_TEXT = "👋 Hello! How can we help you today?\n\nSend your message and an agent will respond shortly."


def parse_command(text: str) -> tuple[str, list[str]]:
    """'/addagent@relay_bot 42 Ann Lee' -> ('addagent', ['42', 'Ann', 'Lee'])."""
    parts = text.strip().split()
    name = parts[0][1:].split("@", 1)[0].lower()
    return name, parts[1:]


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


class CommandHandler:
    """Bot command surface. Admin commands go through the shared AgentPool."""

    def __init__(self, pool: AgentPool, logs_page_size: Optional[int] = None):
        self.pool = pool
        self.logs_page_size = logs_page_size or settings.logs_page_size
        self._admin_commands: dict[str, Callable[[Session, int, list[str]], str]] = {
            "addagent": self._add_agent,
            "removeagent": self._remove_agent,
            "setactive": self._set_active,
            "setoffline": self._set_offline,
            "agents": self._list_agents,
            "addadmin": self._add_admin,
            "removeadmin": self._remove_admin,
            "admins": self._list_admins,
            "logs": self._logs,
        }

    def handle(self, db: Session, sender_id: int, text: str) -> Optional[str]:
        """Reply text for a command, or None when the command is unknown."""
        name, args = parse_command(text)

        if name == "start":
            return self._start(db, sender_id)
        if name == "myid":
            return f"Your Telegram ID: <code>{sender_id}</code>"

        handler = self._admin_commands.get(name)
        if handler is None:
            return None

        if not directory_store.is_admin(db, sender_id):
            return ADMIN_ONLY_TEXT

        logger.info(f"Admin command /{name}", extra={"context": {"sender_id": sender_id, "args": args}})
        return handler(db, sender_id, args)

    def _start(self, db: Session, sender_id: int) -> str:
        identity = classify(db, sender_id)
        if identity.kind == SenderKind.ADMIN:
            return ADMIN_HELP_TEXT
        if identity.kind == SenderKind.AGENT:
            agent = identity.agent
            status = (
                "🟢 ACTIVE - You will receive user messages"
                if agent.is_active
                else "⚪ INACTIVE - You won't receive messages"
            )
            return (
                f"👋 Hello {html.escape(agent.name)}!\n\nStatus: {status}\n\n"
                "When users message the bot, you'll receive them here.\n"
                "Reply to a forwarded message to answer that user."
            )
        return USER_WELCOME_TEXT

    def _add_agent(self, db: Session, sender_id: int, args: list[str]) -> str:
        if len(args) < 2:
            return "Usage: <code>/addagent &lt;telegram_id&gt; &lt;name&gt;</code>"
        telegram_id = _parse_int(args[0])
        if telegram_id is None:
            return "❌ Invalid telegram_id. Must be a number."
        name = " ".join(args[1:])

        result = self.pool.add(db, telegram_id, name)
        if not result.ok:
            return "❌ Agent already exists."
        return f"✅ Agent '{html.escape(name)}' added successfully!"

    def _agent_id_arg(self, args: list[str], usage: str) -> tuple[Optional[int], Optional[str]]:
        if len(args) < 1:
            return None, f"Usage: <code>{usage} &lt;agent_id&gt;</code>"
        agent_id = _parse_int(args[0])
        if agent_id is None:
            return None, "❌ Invalid agent_id. Must be a number."
        return agent_id, None

    def _remove_agent(self, db: Session, sender_id: int, args: list[str]) -> str:
        agent_id, error = self._agent_id_arg(args, "/removeagent")
        if error:
            return error
        result = self.pool.remove(db, agent_id)
        if not result.ok:
            return f"❌ {result.error}"
        return "✅ Agent removed successfully"

    def _set_active(self, db: Session, sender_id: int, args: list[str]) -> str:
        agent_id, error = self._agent_id_arg(args, "/setactive")
        if error:
            return error
        result = self.pool.activate(db, agent_id)
        if not result.ok:
            return f"❌ {result.error}"
        return f"✅ Agent '{html.escape(result.value.name)}' is now active"

    def _set_offline(self, db: Session, sender_id: int, args: list[str]) -> str:
        agent_id, error = self._agent_id_arg(args, "/setoffline")
        if error:
            return error
        result = self.pool.deactivate(db, agent_id)
        if not result.ok:
            return f"❌ {result.error}"
        return f"✅ Agent '{html.escape(result.value.name)}' is now offline"

    def _list_agents(self, db: Session, sender_id: int, args: list[str]) -> str:
        agents = self.pool.list_agents(db)
        if not agents:
            return "No agents registered. Use <code>/addagent</code> to add one."

        lines = ["📋 <b>Registered Agents:</b>\n"]
        for agent in agents:
            status = "🟢 ACTIVE" if agent.is_active else "⚪ inactive"
            lines.append(f"• ID: <code>{agent.id}</code> | {html.escape(agent.name)} | {status}")
            lines.append(f"  Telegram ID: <code>{agent.external_id}</code>")
        return "\n".join(lines)

    def _add_admin(self, db: Session, sender_id: int, args: list[str]) -> str:
        if len(args) < 1:
            return "Usage: <code>/addadmin &lt;telegram_id&gt;</code>"
        admin_id = _parse_int(args[0])
        if admin_id is None:
            return "❌ Invalid telegram_id. Must be a number."

        result = self.pool.add_admin(db, admin_id)
        if not result.ok:
            return "❌ Admin already exists."
        return f"✅ Admin <code>{admin_id}</code> added successfully!"

    def _remove_admin(self, db: Session, sender_id: int, args: list[str]) -> str:
        if len(args) < 1:
            return "Usage: <code>/removeadmin &lt;telegram_id&gt;</code>"
        admin_id = _parse_int(args[0])
        if admin_id is None:
            return "❌ Invalid telegram_id. Must be a number."
        if admin_id == sender_id:
            return "❌ You cannot remove yourself."

        result = self.pool.remove_admin(db, admin_id)
        if not result.ok:
            return "❌ Admin not found."
        return f"✅ Admin <code>{admin_id}</code> removed."

    def _list_admins(self, db: Session, sender_id: int, args: list[str]) -> str:
        admins = directory_store.list_admins(db)
        if not admins:
            return "No admins registered."
        return "👑 <b>Registered Admins:</b>\n\n" + "\n".join(f"• <code>{admin_id}</code>" for admin_id in admins)

    def _logs(self, db: Session, sender_id: int, args: list[str]) -> str:
        user_id = None
        if args:
            user_id = _parse_int(args[0])
            if user_id is None:
                return "❌ Invalid user_id. Must be a number."

        entries = query_logs(db, user_id=user_id, limit=self.logs_page_size)
        if not entries:
            return "No conversation logs found."
        return "📝 <b>Recent Conversations:</b>\n\n" + "\n".join(format_log_line(entry) for entry in entries)
