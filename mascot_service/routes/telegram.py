from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException

from mascot_service.config import get_settings
from mascot_service.errors import MascotServiceError
from mascot_service.models import BlendOutcome
from mascot_service.schemas import TelegramUpdate, best_image_file_id
from mascot_service.services.orchestrator import BlendOrchestrator, get_orchestrator
from mascot_service.services.telegram_client import (
    TelegramClient,
    TelegramError,
    get_telegram_client,
)

logger = logging.getLogger("mascot-service")

router = APIRouter(prefix="/telegram", tags=["telegram"])

START_TEXT = "Send me the photo you want turned into a PFP. You'll get it back here once it's ready. 😺✨"
HELP_TEXT = (
    "How it works:\n"
    "1) Send a photo here (as a photo or an image file).\n"
    "2) Our mascot hops into your picture.\n"
    "3) You'll receive your finished PFP back in this chat."
)
NOT_AN_IMAGE_TEXT = "Please send a JPG/PNG as a photo or image file."
ACK_TEXT = "Got it! Your PFP will be sent here soon. 😺"
READY_CAPTION = "Your PFP is ready! 😺✨"
DOWNLOAD_FAILED_TEXT = "Sorry, I could not download your photo. Please try again later."


def caption_for(outcome: BlendOutcome) -> str:
    suffix = "AI blend" if outcome.is_generative else "classic"
    return f"{READY_CAPTION} ({suffix})"


async def _reply(client: TelegramClient, chat_id: int, text: str) -> None:
    try:
        await client.send_message(chat_id, text)
    except TelegramError as exc:
        logger.error("[telegram.reply] chat_id=%s failed: %s", chat_id, exc)


async def deliver_blend(
    client: TelegramClient,
    orchestrator: BlendOrchestrator,
    chat_id: int,
    file_id: str,
    rid: str,
) -> None:
    """Fetch the photo, run the pipeline and send exactly one reply."""

    try:
        raw = await client.fetch_file(file_id)
    except TelegramError as exc:
        logger.error("[telegram.deliver] rid=%s fetch failed: %s", rid, exc)
        await _reply(client, chat_id, DOWNLOAD_FAILED_TEXT)
        return

    try:
        outcome = await orchestrator.run(raw, request_id=rid)
    except MascotServiceError as exc:
        logger.error("[telegram.deliver] rid=%s pipeline failed: %s", rid, exc)
        await _reply(client, chat_id, exc.user_message)
        return
    except Exception:
        logger.exception("[telegram.deliver] rid=%s pipeline crashed", rid)
        await _reply(client, chat_id, MascotServiceError.user_message)
        return

    try:
        await client.send_photo(chat_id, outcome.to_png(), caption=caption_for(outcome))
    except TelegramError:
        logger.exception("[telegram.deliver] rid=%s sendPhoto failed", rid)
        return
    logger.info(
        "[telegram.delivered] rid=%s chat_id=%s provenance=%s",
        rid,
        chat_id,
        outcome.provenance.value,
    )


@router.post("/webhook")
async def telegram_webhook(
    update: TelegramUpdate,
    background: BackgroundTasks,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
    client: TelegramClient = Depends(get_telegram_client),
    orchestrator: BlendOrchestrator = Depends(get_orchestrator),
) -> dict[str, bool]:
    # Telegram retries non-2xx deliveries, so everything below answers 200.
    secret = get_settings().telegram.webhook_secret
    if secret and x_telegram_bot_api_secret_token != secret:
        raise HTTPException(status_code=403, detail="invalid webhook secret")

    message = update.message
    logger.info(
        "[update] id=%s kind=%s chat_id=%s from_id=%s has_photo=%s has_doc=%s",
        update.update_id,
        update.kind,
        message.chat.id if message else None,
        message.from_user.id if message and message.from_user else None,
        bool(message and message.photo),
        bool(message and message.document),
    )
    if message is None:
        return {"ok": True}

    chat_id = message.chat.id
    command = message.command
    if command == "start":
        await _reply(client, chat_id, START_TEXT)
        return {"ok": True}
    if command == "help":
        await _reply(client, chat_id, HELP_TEXT)
        return {"ok": True}

    file_id = best_image_file_id(message)
    if file_id is None and message.document is not None:
        # non-image attachments are ignored
        return {"ok": True}
    if not file_id:
        await _reply(client, chat_id, NOT_AN_IMAGE_TEXT)
        return {"ok": True}

    rid = uuid.uuid4().hex[:8]
    await _reply(client, chat_id, ACK_TEXT)
    background.add_task(deliver_blend, client, orchestrator, chat_id, file_id, rid)
    logger.info("[telegram.queued] rid=%s chat_id=%s file_id=%s", rid, chat_id, file_id)
    return {"ok": True}
