"""Admin authentication - exchanges the admin API key for a bearer token"""

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..config import JWT_EXPIRE_MINUTES
from ..rate_limiter import rate_limit_dependency
from ..security import issue_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Admin: Auth"])


class TokenRequest(BaseModel):
    api_key: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


@router.post("/token", response_model=TokenResponse)
async def create_admin_token(data: TokenRequest, request: Request):
    await rate_limit_dependency(request, "default")

    token = issue_admin_token(data.api_key)
    if not token:
        raise HTTPException(status_code=401, detail="Invalid API key")

    logger.info("🔑 Admin token issued")
    return {"access_token": token, "token_type": "bearer", "expires_in": JWT_EXPIRE_MINUTES * 60}
