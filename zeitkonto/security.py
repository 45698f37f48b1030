from __future__ import annotations

from fastapi import Header, Request

from zeitkonto.audit import Actor
from zeitkonto.errors import ApiError
from zeitkonto.models import AuditActorType

_ACTOR_TYPES = {
    "admin": AuditActorType.ADMIN,
    "employee": AuditActorType.EMPLOYEE,
}


def get_actor(
    request: Request,
    x_actor_type: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
) -> Actor:
    """Actor identity as asserted by the host application.

    Credentials are checked upstream; this only reads who the caller claims to be.
    """
    raw_type = (x_actor_type or "employee").strip().lower()
    actor_type = _ACTOR_TYPES.get(raw_type)
    if actor_type is None:
        raise ApiError(status_code=400, code="INVALID_ACTOR", message=f"Unknown actor type '{x_actor_type}'.")

    actor = Actor(type=actor_type, name=(x_actor_name or "").strip() or None)
    request.state.actor = raw_type
    request.state.actor_id = actor.display_name
    return actor


def require_admin(
    request: Request,
    x_actor_type: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
) -> Actor:
    actor = get_actor(request, x_actor_type, x_actor_name)
    if not actor.is_admin:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Admin actor required.")
    return actor
