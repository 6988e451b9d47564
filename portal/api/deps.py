"""Shared dependencies: administrator token and per-app services."""
import hmac
from datetime import datetime, timedelta
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from portal.config import settings
from portal.services.chat import ChatSessionManager
from portal.services.feed import ActivityFeed
from portal.stores import ActivityStore, AiConfigStore

security = HTTPBearer(auto_error=False)

ADMIN_SUBJECT = "admin"


def verify_admin_password(plain: str) -> bool:
    return hmac.compare_digest(plain.encode("utf-8"), settings.admin_password.encode("utf-8"))


def create_access_token(subject: str = ADMIN_SUBJECT) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode = {"sub": subject, "role": "admin", "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_current_admin(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> str:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(credentials.credentials, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if payload.get("role") != "admin" or payload.get("type") != "access":
        raise HTTPException(status_code=403, detail="Administrator access required")
    return payload.get("sub") or ADMIN_SUBJECT


def get_store(request: Request) -> ActivityStore:
    return request.app.state.store


def get_feed(request: Request) -> ActivityFeed:
    return request.app.state.feed


def get_ai_config_store(request: Request) -> AiConfigStore:
    return request.app.state.ai_config_store


def get_chat(request: Request) -> ChatSessionManager:
    return request.app.state.chat


# Type aliases for route injection
AdminOnly = Annotated[str, Depends(get_current_admin)]
Store = Annotated[ActivityStore, Depends(get_store)]
Feed = Annotated[ActivityFeed, Depends(get_feed)]
AiConfigs = Annotated[AiConfigStore, Depends(get_ai_config_store)]
Chat = Annotated[ChatSessionManager, Depends(get_chat)]
