from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relaydesk.config import settings
from relaydesk.database import SessionLocal, init_db
from relaydesk.logging_config import get_logger, setup_logging
from relaydesk.routers import admin, telegram_webhook
from relaydesk.services.agent_pool import AgentPool
from relaydesk.services.bootstrap_service import seed_initial_data
from relaydesk.services.command_service import CommandHandler
from relaydesk.services.routing_service import RoutingEngine
from relaydesk.services.telegram_service import TelegramService
from relaydesk.services.transcription_service import TranscriptionService

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="RelayDesk API",
    description="Relay between anonymous users and support agents over Telegram",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(telegram_webhook.router)
app.include_router(admin.router)

# Single owner of routing state for the whole process.
agent_pool = AgentPool()
telegram = TelegramService(settings.bot_token)
transcriber = TranscriptionService(
    settings.openai_api_key,
    model=settings.transcription_model,
    enabled=settings.transcription_enabled,
)

app.state.agent_pool = agent_pool
app.state.telegram = telegram
app.state.routing_engine = RoutingEngine(agent_pool, telegram, transcriber)
app.state.command_handler = CommandHandler(agent_pool)


@app.on_event("startup")
def startup() -> None:
    init_db()
    db = SessionLocal()
    try:
        added = seed_initial_data(db, agent_pool, settings)
        agents = agent_pool.list_agents(db)
    finally:
        db.close()

    if settings.webhook_url:
        result = telegram.set_webhook(settings.webhook_url, settings.webhook_secret)
        if not result.get("ok"):
            logger.error(f"Failed to register Telegram webhook: {result.get('description')}")

    logger.info(
        "RelayDesk started",
        extra={"context": {"seeded": added, "agents": len(agents), "transcription": transcriber.enabled}},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
