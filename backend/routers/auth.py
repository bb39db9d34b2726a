# routers/auth.py - Sign-up, sign-in, token refresh and sign-out
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, AccessRedirect, UserRegister, UserLogin, TokenResponse, RefreshRequest,
    LogoutRequest, get_current_user, resolve_role, CurrentUser, SIGN_IN_PATH,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)
from database import get_db_session
from models import Profile

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


async def _build_token_response(profile: Profile, db: AsyncSession) -> TokenResponse:
    """Build token response from a profile ORM instance"""
    token_data = {
        "sub": profile.id,
        "email": profile.email,
    }
    access_token = AuthService.create_access_token(token_data)
    refresh_token = AuthService.create_refresh_token(token_data)
    role = await resolve_role(db, profile.id)

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user={
            "id": profile.id,
            "email": profile.email,
            "full_name": profile.full_name or "",
            "role": role.value,
        },
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a new account (regular_user until a role is assigned)"""
    profile = await AuthService.register_user(user_data, db)
    return await _build_token_response(profile, db)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate and receive tokens"""
    profile = await AuthService.authenticate_user(credentials.email, credentials.password, db)
    if not profile:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return await _build_token_response(profile, db)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    refresh_req: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
):
    """Refresh access token using a refresh token"""
    payload = AuthService.verify_token(refresh_req.refresh_token)

    if payload.get("type") != "refresh":
        raise AccessRedirect(401, "Invalid token type. Expected refresh token.", SIGN_IN_PATH)

    jti = payload.get("jti")
    if jti and await AuthService.is_token_revoked(jti, db):
        raise AccessRedirect(401, "Refresh token has been revoked", SIGN_IN_PATH)

    profile = await db.get(Profile, payload.get("sub"))
    if not profile or not profile.is_active:
        raise AccessRedirect(401, "User not found or inactive", SIGN_IN_PATH)

    # Rotation: a refresh token is good for one exchange
    if jti:
        await AuthService.revoke_token(
            jti, profile.id, datetime.fromtimestamp(payload["exp"], tz=timezone.utc), db,
        )
    return await _build_token_response(profile, db)


@router.post("/logout")
async def logout(
    body: Optional[LogoutRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Logout: revoke the presented access token and the session's refresh token"""
    if user.token_jti:
        await AuthService.revoke_token(user.token_jti, user.id, user.token_expires_at, db)
    if body is not None and body.refresh_token:
        await AuthService.revoke_refresh_token(body.refresh_token, user.id, db)
    return {"status": "logged_out", "message": "Session terminated"}


@router.get("/me")
async def get_current_user_info(user: CurrentUser = Depends(get_current_user)):
    """Get current authenticated user information"""
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role.value,
        "is_active": user.is_active,
    }
