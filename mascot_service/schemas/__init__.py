"""Pydantic models for inbound webhook payloads."""

from .telegram import (  # noqa: F401
    PhotoSize,
    TelegramChat,
    TelegramDocument,
    TelegramMessage,
    TelegramUpdate,
    TelegramUser,
    best_image_file_id,
)

__all__ = [
    "PhotoSize",
    "TelegramChat",
    "TelegramDocument",
    "TelegramMessage",
    "TelegramUpdate",
    "TelegramUser",
    "best_image_file_id",
]
