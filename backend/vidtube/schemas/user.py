# vidtube/schemas/user.py
"""
Pydantic schemas for the user endpoints.
Request bodies keep every field optional so that missing values reach the
handlers' presence checks (400) instead of failing validation.
"""
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel


# ========== Input models ==========
class LoginIn(BaseModel):
    """Login with either username or email plus password."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenIn(BaseModel):
    """Refresh token in the body, for clients that cannot send cookies."""
    refreshToken: Optional[str] = None


class ChangePasswordIn(BaseModel):
    oldPassword: Optional[str] = None
    newPassword: Optional[str] = None


class UpdateAccountIn(BaseModel):
    fullName: Optional[str] = None
    email: Optional[str] = None


# ========== Output models ==========
class UserOut(BaseModel):
    """
    User as returned to clients. Never carries the password hash or the
    refresh token.
    """
    id: str
    username: str
    email: str
    fullName: str
    avatar: str
    coverImage: str = ""
    watchHistory: List[str] = []
    createdAt: Optional[dt.datetime] = None
    updatedAt: Optional[dt.datetime] = None

    @classmethod
    def from_model(cls, user) -> "UserOut":
        return cls(
            id=str(user.id),
            username=user.username,
            email=user.email,
            fullName=user.full_name,
            avatar=user.avatar,
            coverImage=user.cover_image or "",
            watchHistory=[str(v) for v in (user.watch_history or [])],
            createdAt=user.created_at,
            updatedAt=user.updated_at,
        )


class TokenPairOut(BaseModel):
    accessToken: str
    refreshToken: str


class LoginOut(TokenPairOut):
    user: UserOut


class OwnerOut(BaseModel):
    """Reduced projection of a video owner."""
    fullName: str
    username: str
    avatar: str


class ChannelProfileOut(BaseModel):
    id: str
    fullName: str
    username: str
    email: str
    avatar: str
    coverImage: str = ""
    subscribersCount: int
    channelsSubscribedToCount: int
    isSubscribed: bool


def user_payload(user) -> dict:
    """JSON-ready user dict for response envelopes."""
    return UserOut.from_model(user).model_dump(mode="json")
