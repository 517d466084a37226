import asyncio
from types import SimpleNamespace
from urllib.parse import unquote
from uuid import uuid4

from maintenance_api.schemas.realtime import DEFAULT_PUSH_BODY, DEFAULT_PUSH_TITLE
from maintenance_api.services.notifications import (
    FALLBACK_TEMPLATES,
    NotificationEngine,
    build_push_payload,
    format_phone_number,
    render_template,
    template_placeholders,
    whatsapp_url,
)
from maintenance_api.services.realtime import BroadcastManager


def test_format_phone_number():
    assert format_phone_number("010 1234 5678", "20") == "+201012345678"
    assert format_phone_number("+20 10 1234 5678", "20") == "+201012345678"
    assert format_phone_number("1012345678", "20") == "+201012345678"


def test_render_template_blanks_missing_values():
    message = render_template("مرحباً {{name}} - {{branch}}", {"name": "علي", "branch": None})
    assert message == "مرحباً علي - "


def test_template_placeholders_in_order():
    assert template_placeholders(FALLBACK_TEMPLATES["ticket_rejected"]) == ["name", "ticket_id", "branch", "reason"]


def test_whatsapp_url_encodes_message():
    url = whatsapp_url("01012345678", "تم فتح بلاغ", "20")
    assert url.startswith("https://wa.me/201012345678?text=")
    assert unquote(url.split("text=", 1)[1]) == "تم فتح بلاغ"


def test_push_payload_defaults():
    payload = build_push_payload(body="")
    assert payload.title == DEFAULT_PUSH_TITLE
    assert payload.body == DEFAULT_PUSH_BODY
    assert payload.url == "/"
    assert build_push_payload("t", "b", "/tickets/1").url == "/tickets/1"


class FakeTemplates:
    def __init__(self, rows=None, row=None):
        self.rows = rows or []
        self.row = row

    async def list_templates(self, active_only=False):
        return self.rows

    async def get_template_by_key(self, key):
        return self.row


def test_engine_prefers_synced_templates():
    engine = NotificationEngine()
    repo = FakeTemplates(rows=[SimpleNamespace(key="new_ticket", template_ar="بلاغ {{ticket_id}}")])
    assert asyncio.run(engine.sync_templates(repo)) == 1
    assert asyncio.run(engine.generate_message("new_ticket", {"ticket_id": 12})) == "بلاغ 12"


def test_engine_unknown_key():
    engine = NotificationEngine()
    assert asyncio.run(engine.generate_message("missing", {})) == ""
    repo = FakeTemplates(row=SimpleNamespace(key="custom", template_ar="أهلاً {{name}}"))
    assert asyncio.run(engine.generate_message("custom", {"name": "سارة"}, repo)) == "أهلاً سارة"


def test_set_template_restores_fallback():
    engine = NotificationEngine()
    engine.set_template("new_ticket", "x")
    engine.set_template("new_ticket", None)
    message = asyncio.run(engine.generate_message("new_ticket", {"name": "a"}))
    assert message.startswith("مرحباً a")


class FakeSocket:
    def __init__(self):
        from starlette.websockets import WebSocketState

        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


def test_publish_push_reaches_user_and_role_topics():
    manager = BroadcastManager()
    user_id = uuid4()
    mine, team = FakeSocket(), FakeSocket()

    async def scenario():
        await manager.connect(manager.user_topic(user_id), mine)
        await manager.connect(manager.role_topic("technician"), team)
        return await manager.publish_push(build_push_payload("عنوان"), user_id=user_id, role="technician")

    assert asyncio.run(scenario()) == 2
    assert mine.sent[0]["type"] == "push"
    assert mine.sent[0]["payload"]["title"] == "عنوان"
    assert team.sent[0]["channel"] == "role:technician"


def test_push_to_offline_user_leaves_no_topic_behind():
    manager = BroadcastManager()
    sock = FakeSocket()
    topic = manager.role_topic("manager")

    async def scenario():
        offline = await manager.publish_push(build_push_payload("x"), user_id=uuid4())
        await manager.connect(topic, sock)
        await manager.disconnect(topic, sock)
        return offline

    assert asyncio.run(scenario()) == 0
    assert manager.subscriber_count(topic) == 0
    assert manager._topics == {}
    assert manager._locks == {}
