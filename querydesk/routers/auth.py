"""Login, logout and current-identity endpoints."""
import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from querydesk.auth import SessionAuthenticator
from querydesk.config import config
from querydesk.models import UserAccount
from querydesk.routers.deps import (
    SESSION_COOKIE,
    current_user,
    get_authenticator,
    session_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    user, token = await authenticator.login(body.username, body.password)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="strict",
        secure=config.cookie_secure,
        max_age=int(authenticator.session_ttl.total_seconds()),
    )
    return {"user": user.public_dict()}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    await authenticator.logout(session_token(request))
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="strict")
    return {"success": True}


@router.get("/me")
async def me(user: UserAccount = Depends(current_user)):
    return {"user": user.public_dict()}
