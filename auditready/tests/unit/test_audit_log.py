from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from auditready.domain.models import AuditLogEntry
from auditready.services.audit import record_event, sanitize_metadata


def test_sanitize_metadata_redacts_nested_secrets() -> None:
    payload = {
        "period": "2026-03",
        "provider": {"Authorization": "Bearer abc", "model": "claude"},
        "items": [{"api_key": "k"}, {"count": 2}],
    }
    assert sanitize_metadata(payload) == {
        "period": "2026-03",
        "provider": {"Authorization": "[REDACTED]", "model": "claude"},
        "items": [{"api_key": "[REDACTED]"}, {"count": 2}],
    }


@pytest.mark.asyncio
async def test_record_event_writes_system_actor_rows(sessionmaker, org_id) -> None:
    await record_event(
        sessionmaker,
        org_id=org_id,
        actor_id=None,
        action="checkpoints.generate",
        entity_type="checkpoint",
        metadata={"generated": 3, "token": "secret"},
    )
    async with sessionmaker() as session:
        entry = (await session.execute(select(AuditLogEntry))).scalar_one()
    assert entry.actor_id is None
    assert entry.metadata_json == {"generated": 3, "token": "[REDACTED]"}


def test_sanitize_metadata_normalizes_values_for_json() -> None:
    payload = {
        "due_date": date(2026, 3, 31),
        "cost_usd": Decimal("0.018000"),
        "error_message": "x" * 5000,
        "codes": ("QM-001", "QM-002"),
    }
    sanitized = sanitize_metadata(payload)
    assert sanitized["due_date"] == "2026-03-31"
    assert sanitized["cost_usd"] == "0.018000"
    assert len(sanitized["error_message"]) == 1000
    assert sanitized["codes"] == ["QM-001", "QM-002"]
