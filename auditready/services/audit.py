from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditready.domain.models import AuditLogEntry


logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
_SECRET_FRAGMENTS = ("api_key", "authorization", "token", "secret", "password", "credential")
# Error messages and model text can be long; the audit trail keeps a prefix.
_MAX_TEXT_CHARS = 1000


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in _SECRET_FRAGMENTS)


def sanitize_metadata(value: Any) -> Any:
    """Make audit metadata safe to store as JSON.

    Secret-looking keys are masked at any depth, dates and decimals become
    strings, and long text is cut to a bounded prefix.
    """
    if isinstance(value, dict):
        return {
            str(key): REDACTED if _is_secret(str(key)) else sanitize_metadata(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [sanitize_metadata(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, str) and len(value) > _MAX_TEXT_CHARS:
        return value[:_MAX_TEXT_CHARS]
    return value


async def record_event(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    org_id: str | None,
    actor_id: str | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    occurred_at: datetime | None = None,
) -> None:
    # Own session; a failed audit write is logged and never undoes the audited change.
    async with sessionmaker() as session:
        session.add(
            AuditLogEntry(
                org_id=org_id,
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata_json=sanitize_metadata(metadata or {}),
                occurred_at=occurred_at or datetime.now(timezone.utc),
            )
        )
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("audit_write_failed action=%s org_id=%s", action, org_id, exc_info=exc)
