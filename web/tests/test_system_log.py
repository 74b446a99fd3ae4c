from sqlalchemy import select

from tourbook.models import SystemLog
from tourbook.services import SystemLogService
from tourbook.services.system_log_service import REDACTED, sanitize, sanitize_text


def test_sanitize_text_redacts_contacts_and_secrets():
    text = sanitize_text("call +905321234567 or mail a.b@example.com, Bearer abc.def.ghi password=hunter2")
    assert "[PHONE]" in text
    assert "[EMAIL]" in text
    assert "hunter2" not in text
    assert "abc.def.ghi" not in text


def test_sanitize_nested_details():
    clean = sanitize({"authToken": "x", "order": {"billing": ["+4915123456789"]}, "count": 3})
    assert clean == {"authToken": REDACTED, "order": {"billing": ["[PHONE]"]}, "count": 3}


async def test_record_stores_sanitized_entry(session):
    service = SystemLogService(session)
    entry = await service.record("warn", "test", "customer 05321234567 wrote", {"password": "p"})
    await session.commit()

    stored = await session.scalar(select(SystemLog).where(SystemLog.id == entry.id))
    assert stored.level == "warn"
    assert "05321234567" not in stored.message
    assert stored.details == {"password": REDACTED}


async def test_unknown_level_falls_back_to_info(session):
    entry = await SystemLogService(session).record("loud", "test", "x" * 2000)
    assert entry.level == "info"
    assert len(entry.message) == 1000


async def test_operator_lists_logs(client, session, operator_headers):
    await SystemLogService(session).record("error", "woocommerce-webhook", "boom")
    await session.commit()

    response = await client.get("/api/system-logs", params={"level": "error"}, headers=operator_headers)
    assert response.status_code == 200
    assert [e["message"] for e in response.json()] == ["boom"]
