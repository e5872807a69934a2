# approvaldesk/security.py
"""Security dependencies for actor identification and capability enforcement."""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from approvaldesk.config import ACTOR_EMAIL_HEADER, ACTOR_ID_HEADER, ACTOR_ROLE_HEADER
from approvaldesk.schemas.actor import Actor
from approvaldesk.services.authorization import Capability, has_capability
from approvaldesk.utils.errors import error_response

logger = logging.getLogger(__name__)


def require_actor(
    actor_id: str | None = Header(default=None, alias=ACTOR_ID_HEADER),
    actor_email: str | None = Header(default=None, alias=ACTOR_EMAIL_HEADER),
    actor_role: str | None = Header(default=None, alias=ACTOR_ROLE_HEADER),
) -> Actor:
    """Build the calling actor from the identity headers set upstream."""

    values = {"id": actor_id, "email": actor_email, "role": actor_role}
    missing = [name for name, value in values.items() if not (value and value.strip())]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("NO_ACTOR", "Actor identity required.", {"missing": missing}),
        )
    return Actor(id=actor_id.strip(), email=actor_email.strip(), role=actor_role.strip().lower())


def require_capability(capability: Capability) -> Callable[..., Actor]:
    """Ensure the actor's role grants ``capability``."""

    def _dep(actor: Actor = Depends(require_actor)) -> Actor:
        if has_capability(actor.role, capability):
            return actor
        logger.warning(
            "Capability check failed",
            extra={"actor": actor.email, "role": actor.role, "capability": capability.value},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(
                "INSUFFICIENT_PERMISSIONS",
                f"Requires capability: {capability.value}",
                {"role": actor.role, "capability": capability.value},
            ),
        )

    return _dep


__all__ = ["require_actor", "require_capability"]
