from typing import Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class InitialAgent(BaseModel):
    telegram_id: int
    name: str


class Settings(BaseSettings):
    bot_token: str = ""
    database_url: str = "sqlite:///./relaydesk.db"
    debug: bool = False
    log_level: str = "INFO"

    admin_id: Optional[int] = None
    initial_agents: list[InitialAgent] = []

    openai_api_key: Optional[str] = None
    transcription_model: str = "whisper-1"
    transcription_enabled: bool = True

    admin_api_token: Optional[str] = None
    webhook_secret: Optional[str] = None
    webhook_url: Optional[str] = None

    logs_page_size: int = 20
    api_logs_page_size: int = 50
    mapping_retention_days: Optional[int] = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
