import pytest

from mascot_service.schemas import TelegramMessage, TelegramUpdate, best_image_file_id


def _message(**extra) -> TelegramMessage:
    payload = {"message_id": 1, "chat": {"id": 5}, **extra}
    return TelegramMessage.model_validate(payload)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("/start", "start"),
        ("/Help@MascotBot extra words", "help"),
        ("  /start  ", "start"),
        ("hello", None),
        ("/", None),
        (None, None),
    ],
)
def test_command_parsing(text, expected) -> None:
    assert _message(text=text).command == expected


def test_from_alias_and_unknown_fields() -> None:
    update = TelegramUpdate.model_validate(
        {
            "update_id": 9,
            "message": {
                "message_id": 3,
                "date": 1700000000,
                "chat": {"id": 5, "type": "private", "first_name": "Ana"},
                "from": {"id": 77, "is_bot": False, "first_name": "Ana", "last_name": "Silva", "username": "ana"},
                "text": "hi",
            },
        }
    )

    assert update.kind == "message"
    user = update.message.from_user
    assert user.id == 77
    assert user.username == "ana"
    assert update.message.chat.type == "private"


def test_edited_message_kind() -> None:
    update = TelegramUpdate.model_validate({"update_id": 1, "edited_message": {"message_id": 2, "chat": {"id": 3}}})
    assert update.kind == "edited_message"
    assert TelegramUpdate.model_validate({"update_id": 1}).kind == "unknown"


def test_best_image_prefers_largest_photo() -> None:
    message = _message(
        photo=[
            {"file_id": "s", "width": 90, "height": 90},
            {"file_id": "m", "width": 320, "height": 320},
            {"file_id": "l", "width": 1280, "height": 1280},
        ]
    )
    assert best_image_file_id(message) == "l"


def test_best_image_accepts_image_documents_only() -> None:
    image_doc = _message(document={"file_id": "d1", "mime_type": "image/jpeg"})
    pdf_doc = _message(document={"file_id": "d2", "mime_type": "application/pdf"})
    untyped_doc = _message(document={"file_id": "d3"})

    assert best_image_file_id(image_doc) == "d1"
    assert best_image_file_id(pdf_doc) is None
    assert best_image_file_id(untyped_doc) is None
    assert best_image_file_id(_message(text="no media")) is None
    assert best_image_file_id(None) is None
