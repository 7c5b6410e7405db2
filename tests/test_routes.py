import json

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from conftest import CountingFetcher, make_png, run
from mascot_service.config import BlendConfig, CanvasConfig, TelegramConfig, get_settings
from mascot_service.errors import AssetUnavailableError, MascotServiceError
from mascot_service.main import app
from mascot_service.middlewares.body_guard import BodyGuardMiddleware
from mascot_service.models import RawImage
from mascot_service.routes import telegram as telegram_routes
from mascot_service.services.blend_provider.null_provider import NullBlendProvider
from mascot_service.services.mascot_cache import MascotCache
from mascot_service.services.orchestrator import BlendOrchestrator, get_orchestrator
from mascot_service.services.telegram_client import TelegramClient, TelegramError, get_telegram_client


def _orchestrator(fetcher=None) -> BlendOrchestrator:
    return BlendOrchestrator(
        provider=NullBlendProvider(),
        mascot_cache=MascotCache("memory://cat.png", fetcher=fetcher or CountingFetcher()),
        canvas=CanvasConfig(output_size=96, ai_input_size=48),
        blend=BlendConfig(timeout_first=0.1, timeout_second=0.1, backoff=0.0),
    )


class FakeTelegram:
    def __init__(self, photo: bytes | None = None, fetch_error: Exception | None = None) -> None:
        self.photo = photo if photo is not None else make_png((200, 120, 40), size=(120, 80), fmt="JPEG")
        self.fetch_error = fetch_error
        self.messages = []
        self.photos = []
        self.fetched = []

    async def fetch_file(self, file_id: str) -> RawImage:
        self.fetched.append(file_id)
        if self.fetch_error is not None:
            raise self.fetch_error
        return RawImage(self.photo)

    async def send_message(self, chat_id, text):
        self.messages.append((chat_id, text))

    async def send_photo(self, chat_id, png, *, caption=None):
        self.photos.append((chat_id, png, caption))


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def telegram():
    fake = FakeTelegram()
    app.dependency_overrides[get_telegram_client] = lambda: fake
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator()
    return fake


def _update(**message) -> dict:
    body = {"message_id": 10, "chat": {"id": 42, "type": "private"}, "from": {"id": 7, "first_name": "Ana"}}
    body.update(message)
    return {"update_id": 1000, "message": body}


# --- service ------------------------------------------------------------------


def test_root_and_health(client) -> None:
    assert client.get("/").json() == {"service": "mascot-service", "ok": True}
    assert client.head("/").status_code == 200
    assert client.get("/health").json() == {"ok": True}


# --- /api/blend -----------------------------------------------------------------


def test_api_blend_returns_png_with_provenance(client, photo_bytes) -> None:
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator()

    response = client.post(
        "/api/blend",
        content=photo_bytes,
        headers={"content-type": "image/jpeg", "X-Request-ID": "req-1"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["x-blend-provenance"] == "fallback"
    assert response.headers["x-blend-attempts"] == "no_image,no_image"
    assert response.headers["x-request-id"] == "req-1"
    assert response.content.startswith(b"\x89PNG")


def test_api_blend_rejects_non_image_content_type(client) -> None:
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator()

    response = client.post("/api/blend", content=b"hello", headers={"content-type": "text/plain"})

    assert response.status_code == 415


def test_api_blend_rejects_empty_body(client) -> None:
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator()

    response = client.post("/api/blend", content=b"", headers={"content-type": "image/png"})

    assert response.status_code == 400


def test_api_blend_undecodable_image_is_422(client) -> None:
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator()

    response = client.post("/api/blend", content=b"not really a png", headers={"content-type": "image/png"})

    assert response.status_code == 422


def test_api_blend_missing_mascot_is_503(client, photo_bytes) -> None:
    fetcher = CountingFetcher(error=AssetUnavailableError("gone"))
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator(fetcher)

    response = client.post("/api/blend", content=photo_bytes, headers={"content-type": "image/jpeg"})

    assert response.status_code == 503
    assert response.json()["detail"] == "mascot asset unavailable"


# --- body guard -----------------------------------------------------------------


def _guarded_app(limit: int) -> FastAPI:
    small = FastAPI()
    small.add_middleware(BodyGuardMiddleware, max_bytes=limit)

    @small.post("/api/echo")
    async def echo(request: Request):
        return {"size": len(await request.body())}

    @small.post("/other")
    async def other(request: Request):
        return {"size": len(await request.body())}

    return small


def test_body_guard_blocks_oversize_uploads() -> None:
    with TestClient(_guarded_app(100)) as guarded:
        response = guarded.post("/api/echo", content=b"x" * 150)

    assert response.status_code == 413
    assert response.json() == {
        "ok": False,
        "error": "REQUEST_BODY_BLOCKED",
        "reason": "oversize:150",
        "limit": 100,
    }


def test_body_guard_replays_small_bodies_and_ignores_other_paths() -> None:
    with TestClient(_guarded_app(100)) as guarded:
        assert guarded.post("/api/echo", content=b"x" * 60).json() == {"size": 60}
        assert guarded.post("/other", content=b"x" * 500).json() == {"size": 500}


def test_body_guard_zero_limit_disables_checks() -> None:
    with TestClient(_guarded_app(0)) as guarded:
        assert guarded.post("/api/echo", content=b"x" * 500).status_code == 200


# --- Telegram webhook -----------------------------------------------------------


def test_start_command_gets_welcome(client, telegram) -> None:
    response = client.post("/telegram/webhook", json=_update(text="/start"))

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert telegram.messages == [(42, telegram_routes.START_TEXT)]
    assert telegram.photos == []


def test_help_command_with_bot_suffix(client, telegram) -> None:
    client.post("/telegram/webhook", json=_update(text="/help@MascotPfpBot"))

    assert telegram.messages == [(42, telegram_routes.HELP_TEXT)]


def test_plain_text_asks_for_an_image(client, telegram) -> None:
    client.post("/telegram/webhook", json=_update(text="hello there"))

    assert telegram.messages == [(42, telegram_routes.NOT_AN_IMAGE_TEXT)]


def test_photo_is_acknowledged_then_delivered(client, telegram) -> None:
    photo = [
        {"file_id": "small", "file_unique_id": "a", "width": 90, "height": 60},
        {"file_id": "large", "file_unique_id": "b", "width": 1280, "height": 853},
    ]

    response = client.post("/telegram/webhook", json=_update(photo=photo))

    assert response.status_code == 200
    assert telegram.messages == [(42, telegram_routes.ACK_TEXT)]
    assert telegram.fetched == ["large"]
    assert len(telegram.photos) == 1
    chat_id, png, caption = telegram.photos[0]
    assert chat_id == 42
    assert png.startswith(b"\x89PNG")
    assert caption == "Your PFP is ready! 😺✨ (classic)"


def test_image_document_is_processed(client, telegram) -> None:
    document = {"file_id": "doc-1", "file_name": "me.png", "mime_type": "image/png"}

    client.post("/telegram/webhook", json=_update(document=document))

    assert telegram.fetched == ["doc-1"]
    assert len(telegram.photos) == 1


def test_non_image_document_is_ignored(client, telegram) -> None:
    document = {"file_id": "doc-2", "file_name": "cv.pdf", "mime_type": "application/pdf"}

    response = client.post("/telegram/webhook", json=_update(document=document))

    assert response.status_code == 200
    assert telegram.messages == []
    assert telegram.fetched == []


def test_update_without_message_is_acknowledged(client, telegram) -> None:
    response = client.post("/telegram/webhook", json={"update_id": 5, "channel_post": {"message_id": 1}})

    assert response.status_code == 200
    assert telegram.messages == []


def test_webhook_secret_is_enforced(client, telegram, monkeypatch) -> None:
    monkeypatch.setenv("TELEGRAM_WEBHOOK_SECRET", "s3cret")
    get_settings.cache_clear()

    denied = client.post("/telegram/webhook", json=_update(text="/start"))
    allowed = client.post(
        "/telegram/webhook",
        json=_update(text="/start"),
        headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert telegram.messages == [(42, telegram_routes.START_TEXT)]


def test_pipeline_failure_sends_user_message(client, telegram) -> None:
    fetcher = CountingFetcher(error=AssetUnavailableError("gone"))
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator(fetcher)

    client.post("/telegram/webhook", json=_update(photo=[{"file_id": "p", "width": 10, "height": 10}]))

    assert telegram.messages == [
        (42, telegram_routes.ACK_TEXT),
        (42, AssetUnavailableError.user_message),
    ]
    assert telegram.photos == []


def test_unexpected_pipeline_crash_still_replies(client, telegram) -> None:
    class _Crashing:
        async def run(self, raw, *, request_id=None):
            raise KeyError("boom")

    app.dependency_overrides[get_orchestrator] = lambda: _Crashing()

    response = client.post(
        "/telegram/webhook",
        json=_update(photo=[{"file_id": "p", "width": 10, "height": 10}]),
    )

    assert response.status_code == 200
    assert telegram.messages == [
        (42, telegram_routes.ACK_TEXT),
        (42, MascotServiceError.user_message),
    ]
    assert telegram.photos == []


def test_download_failure_is_reported(client, telegram) -> None:
    telegram.fetch_error = TelegramError("getFile failed")

    client.post("/telegram/webhook", json=_update(photo=[{"file_id": "p", "width": 10, "height": 10}]))

    assert telegram.messages[-1] == (42, telegram_routes.DOWNLOAD_FAILED_TEXT)
    assert telegram.photos == []


# --- Bot API client -------------------------------------------------------------


def test_telegram_client_fetches_and_sends() -> None:
    png = make_png((1, 2, 3), size=(8, 8))
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        if request.url.path.endswith("/getFile"):
            assert json.loads(request.content) == {"file_id": "abc"}
            return httpx.Response(200, json={"ok": True, "result": {"file_path": "photos/file_1.jpg"}})
        if request.url.path.startswith("/file/"):
            return httpx.Response(200, content=png, headers={"content-type": "image/png"})
        if request.url.path.endswith("/sendPhoto"):
            assert b'name="caption"' in request.content
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 9}})
        return httpx.Response(404, json={"ok": False, "description": "not found"})

    config = TelegramConfig(bot_token="TOKEN", api_base="https://tg.example.com")
    tg = TelegramClient(config, transport=httpx.MockTransport(handler))

    raw = run(tg.fetch_file("abc"))
    sent = run(tg.send_photo(42, png, caption="hi"))

    assert raw.data == png
    assert raw.media_type == "image/png"
    assert sent == {"message_id": 9}
    assert seen == [
        ("POST", "/botTOKEN/getFile"),
        ("GET", "/file/botTOKEN/photos/file_1.jpg"),
        ("POST", "/botTOKEN/sendPhoto"),
    ]


def test_telegram_client_raises_on_api_failure() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(400, json={"ok": False, "description": "chat not found"})
    )
    tg = TelegramClient(TelegramConfig(bot_token="t"), transport=transport)

    with pytest.raises(TelegramError, match="chat not found"):
        run(tg.send_message(1, "hello"))


def test_telegram_client_requires_token() -> None:
    with pytest.raises(TelegramError):
        TelegramClient(TelegramConfig())
