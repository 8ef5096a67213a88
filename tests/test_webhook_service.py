import asyncio
import uuid
from types import SimpleNamespace

import pytest

from src.services import message_service
from src.services import webhook_service as webhook_module
from src.services.ai_service import AIResponse, AIService
from src.services.webhook_service import (
    ERROR_REPLY,
    WebhookService,
    extract_message_content,
)
from src.worker import dispatch


class _FakeSession:
    def __init__(self):
        self.rollbacks = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def rollback(self):
        self.rollbacks += 1


class _FakeWhatsApp:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.read: list[str] = []

    async def send_message(self, to, message):
        self.sent.append((to, message))
        return {"messages": [{"id": "wamid.outbound"}]}

    async def mark_as_read(self, message_id):
        self.read.append(message_id)


class _FakeAI:
    build_conversation_context = staticmethod(AIService.build_conversation_context)

    def __init__(self, reply="Hello from the assistant", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate_response(self, messages, system_prompt=None):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return AIResponse(content=self.reply, usage={})


class _FakeMedia:
    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.media_id = uuid.uuid4()

    async def download_and_save(self, session, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(id=self.media_id)


def _payload(message: dict, object_: str = "whatsapp_business_account") -> dict:
    return {
        "object": object_,
        "entry": [{"id": "123", "changes": [{"field": "messages", "value": {"messages": [message]}}]}],
    }


@pytest.fixture()
def store(monkeypatch):
    """Replace persistence with in-memory records."""

    user = SimpleNamespace(id=uuid.uuid4(), phone_number="15551234567")
    chat = SimpleNamespace(id=uuid.uuid4())
    state = SimpleNamespace(
        user=user,
        chat=chat,
        saved=[],
        statuses=[],
        processed=[],
        existing=None,
        history=[],
    )

    async def _get_or_create_user(session, phone_number):
        return user

    async def _get_or_create_session(session, user_id, session_type="daily"):
        return chat

    async def _save_message(session, **data):
        row = SimpleNamespace(id=uuid.uuid4(), **data)
        state.saved.append(row)
        return row

    async def _update_message_status(session, message_id, status, **extra):
        state.statuses.append((message_id, status, extra))

    async def _mark_processed(session, message_id):
        state.processed.append(message_id)

    async def _get_message_by_whatsapp_id(session, *, whatsapp_message_id):
        return state.existing

    async def _get_recent_processed_messages(session, *, session_id, limit=10):
        return state.history

    monkeypatch.setattr(message_service, "get_or_create_user", _get_or_create_user)
    monkeypatch.setattr(message_service, "get_or_create_session", _get_or_create_session)
    monkeypatch.setattr(message_service, "save_message", _save_message)
    monkeypatch.setattr(message_service, "update_message_status", _update_message_status)
    monkeypatch.setattr(message_service, "mark_processed", _mark_processed)
    monkeypatch.setattr(webhook_module, "get_message_by_whatsapp_id", _get_message_by_whatsapp_id)
    monkeypatch.setattr(webhook_module, "get_recent_processed_messages", _get_recent_processed_messages)
    return state


def _service(whatsapp=None, ai=None, media=None, session=None):
    session = session or _FakeSession()
    return WebhookService(
        whatsapp=whatsapp or _FakeWhatsApp(),
        ai=ai or _FakeAI(),
        media=media or _FakeMedia(),
        session_factory=lambda: session,
    )


def test_extract_text_message():
    content = extract_message_content({"type": "text", "text": {"body": "hi"}})
    assert content.type == "text"
    assert content.content == "hi"
    assert content.media_id is None


def test_extract_image_caption_and_media_id():
    content = extract_message_content({"type": "image", "image": {"id": "m1", "caption": "look"}})
    assert (content.type, content.content, content.media_id) == ("image", "look", "m1")


def test_extract_document_uses_filename():
    content = extract_message_content({"type": "document", "document": {"id": "d1", "filename": "cv.pdf"}})
    assert (content.type, content.content, content.media_id) == ("document", "cv.pdf", "d1")


def test_extract_audio_has_no_text():
    content = extract_message_content({"type": "audio", "audio": {"id": "a1"}})
    assert (content.type, content.content, content.media_id) == ("audio", "", "a1")


def test_extract_location_and_contacts():
    location = extract_message_content(
        {"type": "location", "location": {"latitude": 1.5, "longitude": 2.5, "name": "Office"}}
    )
    assert location.type == "location"
    assert location.content == "Office (1.5,2.5)"

    contacts = extract_message_content(
        {"type": "contacts", "contacts": [{"name": {"formatted_name": "Ada"}}, {"name": {"formatted_name": "Bob"}}]}
    )
    assert contacts.type == "contacts"
    assert contacts.content == "Ada, Bob"


def test_extract_unsupported_type_becomes_empty_text():
    content = extract_message_content({"type": "sticker", "sticker": {"id": "s1"}})
    assert (content.type, content.content, content.media_id) == ("text", "", None)


@pytest.mark.anyio
async def test_text_message_is_stored_answered_and_marked(store):
    whatsapp = _FakeWhatsApp()
    ai = _FakeAI(reply="Sure, here you go")
    service = _service(whatsapp=whatsapp, ai=ai)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.in", "type": "text", "text": {"body": "Help me"}})
    )

    inbound, outbound = store.saved
    assert inbound.direction == "inbound"
    assert inbound.whatsapp_message_id == "wamid.in"
    assert inbound.content == "Help me"
    assert inbound.session_id == store.chat.id

    assert outbound.direction == "outbound"
    assert outbound.content == "Sure, here you go"

    assert whatsapp.read == ["wamid.in"]
    assert whatsapp.sent == [("15551234567", "Sure, here you go")]
    assert ai.calls[0][-1] == {"role": "user", "content": "Help me"}

    assert store.statuses == [
        (outbound.id, "sent", {"whatsapp_message_id": "wamid.outbound", "is_processed": True})
    ]
    assert store.processed == [inbound.id]


@pytest.mark.anyio
async def test_context_includes_prior_processed_turns(store):
    store.history = [
        SimpleNamespace(direction="inbound", content="earlier question"),
        SimpleNamespace(direction="outbound", content="earlier answer"),
    ]
    ai = _FakeAI()
    service = _service(ai=ai)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.in", "type": "text", "text": {"body": "follow up"}})
    )

    assert ai.calls[0] == [
        {"role": "user", "content": "earlier question"},
        {"role": "assistant", "content": "earlier answer"},
        {"role": "user", "content": "follow up"},
    ]


@pytest.mark.anyio
async def test_image_message_is_downloaded_and_enqueued(store, monkeypatch):
    enqueued = []
    monkeypatch.setattr(dispatch, "enqueue_media_processing", lambda *, media_id: enqueued.append(media_id))

    media = _FakeMedia()
    ai = _FakeAI()
    service = _service(media=media, ai=ai)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.img", "type": "image", "image": {"id": "media-1"}})
    )

    assert media.calls[0]["whatsapp_media_id"] == "media-1"
    assert media.calls[0]["media_type"] == "image"
    assert media.calls[0]["message_id"] == store.saved[0].id
    assert enqueued == [media.media_id]
    # Empty caption falls back to a placeholder prompt.
    assert ai.calls[0][-1]["content"] == "I sent you a media file."


@pytest.mark.anyio
async def test_document_is_stored_but_not_enqueued(store, monkeypatch):
    enqueued = []
    monkeypatch.setattr(dispatch, "enqueue_media_processing", lambda *, media_id: enqueued.append(media_id))

    media = _FakeMedia()
    service = _service(media=media)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.doc", "type": "document", "document": {"id": "d1"}})
    )

    assert len(media.calls) == 1
    assert enqueued == []


@pytest.mark.anyio
async def test_media_download_failure_still_replies(store):
    session = _FakeSession()
    whatsapp = _FakeWhatsApp()
    service = _service(whatsapp=whatsapp, media=_FakeMedia(error=RuntimeError("boom")), session=session)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.img", "type": "image", "image": {"id": "m1"}})
    )

    assert session.rollbacks == 1
    assert whatsapp.sent == [("15551234567", "Hello from the assistant")]


@pytest.mark.anyio
async def test_ai_failure_sends_apology(store):
    session = _FakeSession()
    whatsapp = _FakeWhatsApp()
    service = _service(whatsapp=whatsapp, ai=_FakeAI(error=RuntimeError("openai down")), session=session)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.in", "type": "text", "text": {"body": "hi"}})
    )

    assert whatsapp.sent == [("15551234567", ERROR_REPLY)]
    assert session.rollbacks == 1
    assert store.processed == []


@pytest.mark.anyio
async def test_duplicate_delivery_is_skipped(store):
    store.existing = SimpleNamespace(id=uuid.uuid4())
    whatsapp = _FakeWhatsApp()
    service = _service(whatsapp=whatsapp)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "wamid.dup", "type": "text", "text": {"body": "hi"}})
    )

    assert store.saved == []
    assert whatsapp.sent == []


@pytest.mark.anyio
async def test_other_objects_are_ignored(store):
    whatsapp = _FakeWhatsApp()
    service = _service(whatsapp=whatsapp)

    await service.handle_payload(
        _payload({"from": "15551234567", "id": "x", "type": "text", "text": {"body": "hi"}}, object_="page")
    )

    assert store.saved == []
    assert whatsapp.sent == []


@pytest.mark.anyio
async def test_status_callbacks_update_stored_messages(store):
    stored = SimpleNamespace(id=uuid.uuid4())
    store.existing = stored
    service = _service()

    await service.handle_payload(
        {
            "object": "whatsapp_business_account",
            "entry": [
                {
                    "changes": [
                        {
                            "field": "messages",
                            "value": {"statuses": [{"id": "wamid.outbound", "status": "read"}, {"id": "x", "status": "weird"}]},
                        }
                    ]
                }
            ],
        }
    )

    assert store.statuses == [(stored.id, "read", {})]


@pytest.mark.anyio
async def test_malformed_payload_does_not_raise(store):
    service = _service()
    await service.handle_payload({"object": "whatsapp_business_account", "entry": "nope"})
    await service.handle_payload(None)
    assert store.saved == []


@pytest.mark.anyio
async def test_media_enqueue_runs_off_the_event_loop(store, monkeypatch):
    on_loop = []

    def _enqueue(*, media_id):
        try:
            asyncio.get_running_loop()
            on_loop.append(True)
        except RuntimeError:
            on_loop.append(False)

    monkeypatch.setattr(dispatch, "enqueue_media_processing", _enqueue)

    await _service().handle_payload(
        _payload({"from": "15551234567", "id": "wamid.img", "type": "image", "image": {"id": "media-1"}})
    )

    assert on_loop == [False]
