"""Subset of the Telegram Bot API update payload consumed by the webhook."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _TelegramModel(BaseModel):
    """Ignore the many Telegram fields this service does not read."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TelegramUser(_TelegramModel):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None


class TelegramChat(_TelegramModel):
    id: int
    type: str | None = None


class PhotoSize(_TelegramModel):
    file_id: str
    file_unique_id: str | None = None
    width: int = 0
    height: int = 0
    file_size: int | None = None


class TelegramDocument(_TelegramModel):
    file_id: str
    file_name: str | None = None
    mime_type: str | None = None
    file_size: int | None = None


class TelegramMessage(_TelegramModel):
    message_id: int
    chat: TelegramChat
    from_user: TelegramUser | None = Field(default=None, alias="from")
    text: str | None = None
    caption: str | None = None
    photo: List[PhotoSize] = Field(default_factory=list)
    document: TelegramDocument | None = None

    @property
    def command(self) -> str | None:
        """Bot command without the leading slash or ``@botname`` suffix."""

        text = (self.text or "").strip()
        if not text.startswith("/"):
            return None
        head = text.split(maxsplit=1)[0][1:]
        return head.split("@", 1)[0].lower() or None


class TelegramUpdate(_TelegramModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None

    @property
    def kind(self) -> str:
        if self.message is not None:
            return "message"
        if self.edited_message is not None:
            return "edited_message"
        return "unknown"


def best_image_file_id(message: TelegramMessage | None) -> str | None:
    """Largest photo size, or an image document; ``None`` for anything else."""

    if message is None:
        return None
    if message.photo:
        return message.photo[-1].file_id
    document = message.document
    if document and (document.mime_type or "").lower().startswith("image/"):
        return document.file_id
    return None
