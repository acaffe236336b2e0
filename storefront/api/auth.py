"""
Bearer token -> actor resolution
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.config import settings

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Who is calling the API"""
    user_id: int
    is_manager: bool = False


def resolve_token(token: str) -> Optional[Actor]:
    """Look a token up in the configured token table"""
    entry = settings.API_TOKENS.get(token)
    if not entry:
        return None
    return Actor(user_id=int(entry["user_id"]), is_manager=bool(entry.get("is_manager", False)))


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Actor:
    """Dependency: the authenticated actor, or 401"""
    actor = resolve_token(credentials.credentials) if credentials else None
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def require_manager(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency: the actor if it is a manager, otherwise 403"""
    if not actor.is_manager:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return actor
