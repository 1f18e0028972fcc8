from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from clients.store import Store
from models.actors import Actor
from utils import log

logger = log.get_logger(__name__)

security = HTTPBearer()


async def current_actor_get(request: Request, token: HTTPAuthorizationCredentials = Depends(security)) -> Actor:
    if not hasattr(request.app.state, "auth_client"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No auth_client")

    payload = await request.app.state.auth_client.verify(token.credentials)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        return Actor(id=payload.get("sub"), role=payload.get("role") or "both", org_id=payload.get("org_id"))
    except ValidationError as e:
        logger.warning(f"Token for {payload.get('sub')} carries unusable claims: {e.errors()[0]['msg']}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")


async def require_org(actor: Actor = Depends(current_actor_get)) -> Actor:
    if not actor.org_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization not associated with user")
    return actor


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_settlement_timeout(request: Request) -> Optional[float]:
    return getattr(request.app.state, "settlement_timeout", None)
