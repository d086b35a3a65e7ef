import logging
import secrets
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel

from storefront.config import settings

logger = logging.getLogger(__name__)


class Caller(BaseModel):
    """Identity forwarded by the authenticating gateway"""
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: str = Header("user"),
    x_api_key: Optional[str] = Header(None)
) -> Caller:
    """Trust the identity headers only from a gateway holding the shared API key.

    Without a configured API_TOKEN no request is authenticated.
    """
    if not settings.API_TOKEN:
        logger.error("API_TOKEN is not configured; rejecting request")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication is not configured")
    if not x_api_key or not secrets.compare_digest(x_api_key.encode(), settings.API_TOKEN.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return Caller(user_id=x_user_id, role=x_user_role)


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role ({caller.role}) is not authorized to access this route"
        )
    return caller
