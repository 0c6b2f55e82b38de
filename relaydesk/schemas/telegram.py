from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int
    type: str  # private, group, supergroup, channel
    title: Optional[str] = None
    username: Optional[str] = None


class TelegramVoice(BaseModel):
    file_id: str
    file_unique_id: str
    duration: int
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class TelegramMessage(BaseModel):
    message_id: int
    date: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")  # "from" is reserved in Python
    text: Optional[str] = None
    caption: Optional[str] = None
    reply_to_message: Optional["TelegramMessage"] = None
    voice: Optional[TelegramVoice] = None

    model_config = ConfigDict(populate_by_name=True)


TelegramMessage.model_rebuild()


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None


class TelegramWebhookResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error_code: Optional[str] = None
