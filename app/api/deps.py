from fastapi import Header, Request

from app.config import settings
from app.errors import AuthError
from app.services.auth import secret_matches
from app.services.balance import BalanceAdjuster
from app.services.events import EventBus


async def require_admin(
    x_admin_secret: str | None = Header(None, alias="x-admin-secret"),
    authorization: str | None = Header(None),
) -> None:
    """Shared-secret gate for every admin route: x-admin-secret or Bearer token."""
    token = x_admin_secret
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not secret_matches(token, settings.admin_secret_key):
        raise AuthError("Unauthorized")


def get_adjuster(request: Request) -> BalanceAdjuster:
    return request.app.state.adjuster


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus
