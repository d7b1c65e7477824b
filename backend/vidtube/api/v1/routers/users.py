# vidtube/api/v1/routers/users.py
import logging

import jwt
from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q

from vidtube.api.v1.deps import get_current_user
from vidtube.config import settings
from vidtube.core.errors import ApiError
from vidtube.core.responses import api_response
from vidtube.core.security import create_access_token, create_refresh_token, decode_refresh_token
from vidtube.models.user import User
from vidtube.schemas.user import (
    ChangePasswordIn,
    LoginIn,
    RefreshTokenIn,
    UpdateAccountIn,
    user_payload,
)
from vidtube.services import media
from vidtube.services.aggregations import get_channel_profile, get_watch_history

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/users", tags=["users"])

SESSION_COOKIES = ("accessToken", "refreshToken")


# ===== Helpers =====
def _normalize(value: str | None) -> str:
    """Usernames and emails are compared and stored stripped and lowercase."""
    return (value or "").strip().lower()


def _set_session_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    # HttpOnly: the tokens can only be read and replaced by the server
    response.set_cookie("accessToken", access_token, httponly=True, secure=settings.cookie_secure, samesite="lax")
    response.set_cookie("refreshToken", refresh_token, httponly=True, secure=settings.cookie_secure, samesite="lax")


def _clear_session_cookies(response: Response) -> None:
    for name in SESSION_COOKIES:
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure, samesite="lax")


async def issue_token_pair(user: User) -> tuple[str, str]:
    """
    Create an access/refresh token pair and store the refresh token as the
    user's single active one (overwriting any previous session).

    Only the refresh_token column is written, so the password hash is never
    touched by this save.

    Raises:
        ApiError (500): If signing or persisting fails; the cause is only logged
    """
    try:
        access_token = create_access_token(str(user.id), user.username, user.email)
        refresh_token = create_refresh_token(str(user.id))
        user.refresh_token = refresh_token
        await user.save(update_fields=["refresh_token"])
    except Exception:
        logger.exception("[auth] token generation failed for user id=%s", user.id)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR,
                       "Something went wrong while generating refresh and access token")
    return access_token, refresh_token


# ===== Routes =====
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    fullName: str | None = Form(default=None),
    email: str | None = Form(default=None),
    username: str | None = Form(default=None),
    password: str | None = Form(default=None),
    avatar: UploadFile | None = File(default=None),
    coverImage: UploadFile | None = File(default=None),
):
    """
    Register a new user account (multipart form).

    Uploads the avatar (required) and cover image (optional) to Cloudinary,
    then creates the user with a hashed password.

    Returns:
        201 envelope with the created user (no password, no refresh token)

    Raises:
        ApiError (400): Any blank field, missing avatar or failed avatar upload
        ApiError (409): Username or email already taken (case-insensitive)
    """
    if any(not (field or "").strip() for field in (fullName, email, username, password)):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "All fields are required")

    username = _normalize(username)
    email = _normalize(email)
    if await User.filter(Q(username=username) | Q(email=email)).exists():
        raise ApiError(status.HTTP_409_CONFLICT, "User with this username or email already exists")

    if avatar is None or not avatar.filename:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Avatar file is required")

    uploaded_avatar = await media.upload_file(avatar)
    if not uploaded_avatar or not uploaded_avatar.get("url"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Error while uploading avatar")
    uploaded_cover = None
    if coverImage is not None and coverImage.filename:
        uploaded_cover = await media.upload_file(coverImage)

    user = User(
        username=username,
        email=email,
        full_name=fullName.strip(),
        avatar=uploaded_avatar["url"],
        cover_image=(uploaded_cover or {}).get("url") or "",
    )
    user.set_password(password)
    try:
        await user.save()
    except IntegrityError:
        # Lost a race against a concurrent registration with the same identity
        raise ApiError(status.HTTP_409_CONFLICT, "User with this username or email already exists")

    logger.info("[auth] registered user id=%s username=%s", user.id, user.username)
    return api_response(status.HTTP_201_CREATED, user_payload(user), "User registered successfully")


@router.post("/login")
async def login(body: LoginIn, response: Response):
    """
    Authenticate with username or email plus password.

    Both tokens are returned in the body and set as HttpOnly cookies
    ("accessToken", "refreshToken"). Logging in replaces any previously
    stored refresh token, ending the user's other session.

    Raises:
        ApiError (400): Neither username nor email, or no password
        ApiError (404): No user with that username/email
        ApiError (401): Wrong password
    """
    username = _normalize(body.username)
    email = _normalize(body.email)
    if not username and not email:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Username or email is required")
    if not body.password:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Password is required")

    lookups = []
    if username:
        lookups.append(Q(username=username))
    if email:
        lookups.append(Q(email=email))
    user = await User.filter(Q(*lookups, join_type="OR")).first()
    if not user:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User does not exist")
    if not user.is_password_correct(body.password):
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid user credentials")

    access_token, refresh_token = await issue_token_pair(user)
    _set_session_cookies(response, access_token, refresh_token)
    logger.info("[auth] login user id=%s", user.id)
    return api_response(
        status.HTTP_200_OK,
        {"user": user_payload(user), "accessToken": access_token, "refreshToken": refresh_token},
        "User logged in successfully",
    )


@router.post("/logout")
async def logout(response: Response, user: User = Depends(get_current_user)):
    """
    End the session: clear the stored refresh token and both cookies.

    The access token itself stays valid until it expires.
    """
    await User.filter(id=user.id).update(refresh_token=None)
    _clear_session_cookies(response)
    logger.info("[auth] logout user id=%s", user.id)
    return api_response(status.HTTP_200_OK, {}, "User logged out")


@router.post("/refresh-token")
async def refresh_access_token(request: Request, response: Response, body: RefreshTokenIn | None = None):
    """
    Exchange a refresh token (cookie first, then body) for a new token pair.

    The presented token must be the one stored on the user. The replacement
    is written with a compare-and-swap on the old value, so each refresh
    token can be exchanged exactly once even under concurrent requests.

    Raises:
        ApiError (401): Missing, invalid, expired, unknown or already used token
    """
    incoming = request.cookies.get("refreshToken") or (body.refreshToken if body else None)
    if not incoming:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Unauthorized request")

    try:
        payload = decode_refresh_token(incoming)
    except jwt.InvalidTokenError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid refresh token")

    user = await User.get_or_none(id=payload.get("sub"))
    if not user:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid refresh token")
    if user.refresh_token != incoming:
        logger.warning("[auth] stale refresh token presented for user id=%s", user.id)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Refresh token is expired or used")

    try:
        access_token = create_access_token(str(user.id), user.username, user.email)
        refresh_token = create_refresh_token(str(user.id))
    except Exception:
        logger.exception("[auth] token generation failed for user id=%s", user.id)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR,
                       "Something went wrong while generating refresh and access token")

    swapped = await User.filter(id=user.id, refresh_token=incoming).update(refresh_token=refresh_token)
    if not swapped:
        logger.warning("[auth] refresh token for user id=%s was rotated concurrently", user.id)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Refresh token is expired or used")

    _set_session_cookies(response, access_token, refresh_token)
    return api_response(
        status.HTTP_200_OK,
        {"accessToken": access_token, "refreshToken": refresh_token},
        "Access token refreshed",
    )


@router.post("/change-password")
async def change_password(body: ChangePasswordIn, user: User = Depends(get_current_user)):
    """
    Change the current user's password after checking the old one.

    Raises:
        ApiError (400): Missing field or wrong old password (nothing is written)
    """
    if not body.oldPassword or not body.newPassword:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Old and new password are required")
    if not user.is_password_correct(body.oldPassword):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid old password")

    user.set_password(body.newPassword)
    await user.save(update_fields=["password_hash", "updated_at"])
    return api_response(status.HTTP_200_OK, {}, "Password changed successfully")


@router.get("/current-user")
async def current_user(user: User = Depends(get_current_user)):
    return api_response(status.HTTP_200_OK, user_payload(user), "Current user fetched successfully")


@router.patch("/update-account")
async def update_account(body: UpdateAccountIn, user: User = Depends(get_current_user)):
    """
    Update full name and email of the current user.

    Raises:
        ApiError (400): fullName or email missing
        ApiError (409): Email belongs to another user
    """
    full_name = (body.fullName or "").strip()
    email = _normalize(body.email)
    if not full_name or not email:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "All fields are required")
    if await User.filter(email=email).exclude(id=user.id).exists():
        raise ApiError(status.HTTP_409_CONFLICT, "Email is already in use")

    user.full_name = full_name
    user.email = email
    try:
        await user.save(update_fields=["full_name", "email", "updated_at"])
    except IntegrityError:
        # another account took the email between the check and the write
        raise ApiError(status.HTTP_409_CONFLICT, "Email is already in use")
    return api_response(status.HTTP_200_OK, user_payload(user), "Account details updated successfully")


async def _replace_image(user: User, upload: UploadFile | None, field: str, label: str) -> User:
    if upload is None or not upload.filename:
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"{label} file is missing")
    uploaded = await media.upload_file(upload)
    if not uploaded or not uploaded.get("url"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"Error while uploading {label.lower()}")
    setattr(user, field, uploaded["url"])
    await user.save(update_fields=[field, "updated_at"])
    return user


@router.patch("/avatar")
async def update_avatar(
    avatar: UploadFile | None = File(default=None),
    user: User = Depends(get_current_user),
):
    user = await _replace_image(user, avatar, "avatar", "Avatar")
    return api_response(status.HTTP_200_OK, user_payload(user), "Avatar updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    coverImage: UploadFile | None = File(default=None),
    user: User = Depends(get_current_user),
):
    user = await _replace_image(user, coverImage, "cover_image", "Cover image")
    return api_response(status.HTTP_200_OK, user_payload(user), "Cover image updated successfully")


@router.get("/channel/{username}")
async def channel_profile(username: str, user: User = Depends(get_current_user)):
    """
    Public profile of a channel with its subscription counts and whether
    the current user subscribes to it.

    Raises:
        ApiError (404): No user with this username
    """
    profile = await get_channel_profile(username, viewer=user)
    return api_response(status.HTTP_200_OK, profile.model_dump(mode="json"), "User channel fetched successfully")


@router.get("/history")
async def watch_history(user: User = Depends(get_current_user)):
    """Videos the current user watched, in history order, each with a reduced owner."""
    videos = await get_watch_history(user)
    return api_response(
        status.HTTP_200_OK,
        [v.model_dump(mode="json") for v in videos],
        "Watch history fetched successfully",
    )
