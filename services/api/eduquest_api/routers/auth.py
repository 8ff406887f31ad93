from __future__ import annotations

import re

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from eduquest_api.core.security import create_access_token
from eduquest_api.deps import CurrentUserId

router = APIRouter(prefix="/api/auth", tags=["auth"])

_USERNAME_RE = re.compile(r"^[a-z0-9_.-]{1,64}$")


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)


class MeResponse(BaseModel):
    user_id: str


def user_id_for(username: str) -> str:
    name = str(username or "").strip().lower()
    if not _USERNAME_RE.match(name):
        raise HTTPException(status_code=400, detail="invalid_username")
    return f"user_{name}"


@router.post("/login", response_model=AuthResponse)
def auth_login(req: LoginRequest) -> AuthResponse:
    user_id = user_id_for(req.username)
    return AuthResponse(access_token=create_access_token(subject=user_id), user_id=user_id)


@router.get("/me", response_model=MeResponse)
def auth_me(user_id: str = CurrentUserId) -> MeResponse:
    return MeResponse(user_id=user_id)
