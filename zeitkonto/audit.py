from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from zeitkonto.models import AuditActorType, AuditLog

logger = logging.getLogger("zeitkonto.audit")


@dataclass(frozen=True)
class Actor:
    type: AuditActorType
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.type == AuditActorType.ADMIN

    @property
    def display_name(self) -> str:
        name = (self.name or "").strip()
        if name:
            return name
        return "Admin" if self.is_admin else self.type.value.lower()


SYSTEM_ACTOR = Actor(type=AuditActorType.SYSTEM, name="system")


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool = True,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditLog:
    """Stage an audit row inside the caller's transaction.

    The row is committed (or rolled back) together with the write it describes.
    """
    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        success=success,
        details=details or {},
    )
    db.add(audit)

    logger.info(
        "audit_event",
        extra={
            "request_id": request_id,
            "action": action,
            "actor_type": actor_type.value,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "success": success,
            "details": details or {},
        },
    )
    return audit
