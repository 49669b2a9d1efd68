from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.config import AppConfig, Settings, get_config, get_settings
from focusroom.core.database import get_db
from focusroom.core.security import verify_cron_authorization
from focusroom.services.delivery import DeliveryAdapter, ResendDelivery
from focusroom.services.identity import Actor, DatabaseIdentityProvider

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]


def get_delivery() -> DeliveryAdapter:
    """Transport used by HTTP-triggered digest cycles."""
    return ResendDelivery()


Delivery = Annotated[DeliveryAdapter, Depends(get_delivery)]


async def get_current_actor_optional(
    db: DBSession,
    session_id: str | None = Cookie(default=None, alias="session_id"),
) -> Actor | None:
    """Get the current actor if authenticated, None otherwise."""
    if not session_id:
        return None
    return await DatabaseIdentityProvider(db).resolve_session(session_id)


async def get_current_actor(
    actor: Actor | None = Depends(get_current_actor_optional),
) -> Actor:
    """Get the current actor, raise 401 if not authenticated."""
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return actor


async def get_admin_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Get the current actor, raise 403 unless they are an admin."""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


async def require_cron_secret(
    settings: AppSettings,
    authorization: str | None = Header(default=None),
) -> None:
    """Reject cron hits without ``Authorization: Bearer <CRON_SECRET>``."""
    if not verify_cron_authorization(authorization, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# Type aliases for authenticated endpoints
CurrentActorOptional = Annotated[Actor | None, Depends(get_current_actor_optional)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(get_admin_actor)]
