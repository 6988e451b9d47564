"""Administrator gate: one shared passphrase exchanged for a short-lived token."""
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from portal.api.deps import AdminOnly, create_access_token, verify_admin_password

logger = logging.getLogger(__name__)

router = APIRouter()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    password: str


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest):
    if not verify_admin_password(req.password):
        logger.warning("Rejected administrator login")
        raise HTTPException(status_code=401, detail="Invalid password")
    return TokenResponse(access_token=create_access_token())


@router.get("/me")
async def me(admin: AdminOnly):
    return {"role": "admin", "subject": admin}
