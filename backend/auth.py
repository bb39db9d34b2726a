# auth.py - Identity, role resolution and access control
# Features:
# - Secure JWT with JTI for revocation (sign-in, refresh, sign-out)
# - 3-tier roles (admin, technician, regular_user) resolved from user_roles
# - Explicit per-request session context (user, role, loading)
# - Access gate decisions and the edit-permission rule
# - Password policy enforcement (min 12 chars)
# - Brute force protection

import os
import uuid
import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, Any, List
from collections import defaultdict

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from models import Profile, UserRoleAssignment, RevokedToken, AppRole

logger = logging.getLogger("trl-metrology.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY or SECRET_KEY == "change-this-to-a-secure-random-key-in-production":
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "JWT_SECRET_KEY not set or insecure. Generated ephemeral key. "
        "Set JWT_SECRET_KEY in production!"
    )

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
MIN_PASSWORD_LENGTH = 12
MAX_LOGIN_ATTEMPTS = 5
LOGIN_LOCKOUT_MINUTES = 15

SIGN_IN_PATH = "/auth"
HOME_PATH = "/"

security = HTTPBearer(auto_error=False)

# In-memory brute force tracker (use Redis in production)
_login_attempts: Dict[str, list] = defaultdict(list)


# ============================================================
# ROLES
# ============================================================

# Highest wins when a user holds several role rows
ROLE_PRECEDENCE = {
    AppRole.ADMIN: 3,
    AppRole.TECHNICIAN: 2,
    AppRole.REGULAR_USER: 1,
}

EDITOR_ROLES = frozenset({AppRole.ADMIN, AppRole.TECHNICIAN})

# Application pages and the role each one requires (None = sign-in only)
ROUTE_ROLES: Dict[str, Optional[AppRole]] = {
    "/": None,
    "/projects": None,
    "/instruments": None,
    "/instruments/calibrations": AppRole.TECHNICIAN,
    "/production": None,
    "/quality": None,
    "/tdp": None,
}


def can_edit(role: AppRole) -> bool:
    """Only admins and technicians may create records."""
    return AppRole(role) in EDITOR_ROLES


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class UserRegister(BaseModel):
    email: EmailStr
    password: str
    full_name: str = ""

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not any(c.isupper() for c in v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one digit")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class CurrentUser(BaseModel):
    id: str
    email: str
    full_name: str
    role: AppRole
    is_active: bool
    token_jti: Optional[str] = None
    token_expires_at: Optional[datetime] = None


class SessionContext(BaseModel):
    """Who is signed in and with which role, passed explicitly to handlers."""
    user: Optional[CurrentUser] = None
    role: AppRole = AppRole.REGULAR_USER
    loading: bool = False

    @property
    def can_edit(self) -> bool:
        return can_edit(self.role)


class AccessOutcome(str, Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    ALLOW = "allow"


class AccessDecision(BaseModel):
    outcome: AccessOutcome
    redirect_to: Optional[str] = None


class AccessRedirect(HTTPException):
    """Refusal that tells the client where to navigate instead."""

    def __init__(self, status_code: int, detail: str, redirect_to: str):
        super().__init__(status_code=status_code, detail=detail)
        self.redirect_to = redirect_to


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Identity provider: credentials, tokens and session lifecycle"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

    @staticmethod
    def _create_token(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        to_encode.update({
            "exp": now + expires_delta,
            "iat": now,
            "type": token_type,
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        delta = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        return AuthService._create_token(data, "access", delta)

    @staticmethod
    def create_refresh_token(data: Dict[str, Any]) -> str:
        return AuthService._create_token(data, "refresh", timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise AccessRedirect(401, "Token expired", SIGN_IN_PATH)
        except JWTError:
            raise AccessRedirect(401, "Invalid token", SIGN_IN_PATH)

    @staticmethod
    def _check_brute_force(email: str) -> None:
        """Check if login attempts exceed threshold"""
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=LOGIN_LOCKOUT_MINUTES)
        # Clean old attempts
        _login_attempts[email] = [t for t in _login_attempts[email] if t > cutoff]
        if len(_login_attempts[email]) >= MAX_LOGIN_ATTEMPTS:
            raise HTTPException(
                status_code=429,
                detail=f"Too many login attempts. Try again in {LOGIN_LOCKOUT_MINUTES} minutes.",
            )

    @staticmethod
    def _record_failed_attempt(email: str) -> None:
        _login_attempts[email].append(datetime.now(timezone.utc))

    @staticmethod
    def _clear_attempts(email: str) -> None:
        _login_attempts.pop(email, None)

    @staticmethod
    async def register_user(user_data: UserRegister, db: AsyncSession) -> Profile:
        stmt = select(Profile).where(Profile.email == user_data.email)
        result = await db.execute(stmt)
        if result.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="User already exists")

        profile = Profile(
            email=user_data.email,
            full_name=user_data.full_name or user_data.email.split("@")[0],
            password_hash=AuthService.hash_password(user_data.password),
            is_active=True,
        )
        db.add(profile)
        await db.commit()
        await db.refresh(profile)
        logger.info(f"Registered user {profile.id}")
        return profile

    @staticmethod
    async def authenticate_user(email: str, password: str, db: AsyncSession) -> Optional[Profile]:
        AuthService._check_brute_force(email)

        stmt = select(Profile).where(Profile.email == email)
        result = await db.execute(stmt)
        profile = result.scalar_one_or_none()

        if not profile or not AuthService.verify_password(password, profile.password_hash):
            AuthService._record_failed_attempt(email)
            return None

        if not profile.is_active:
            return None

        AuthService._clear_attempts(email)

        profile.last_login_at = datetime.now(timezone.utc)
        db.add(profile)
        await db.commit()
        return profile

    @staticmethod
    async def is_token_revoked(jti: str, db: AsyncSession) -> bool:
        stmt = select(RevokedToken).where(RevokedToken.jti == jti)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def revoke_token(jti: str, user_id: str, expires_at: datetime, db: AsyncSession) -> None:
        revoked = RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at)
        db.add(revoked)
        await db.commit()

    @staticmethod
    async def revoke_refresh_token(token: str, user_id: str, db: AsyncSession) -> None:
        """Revoke a refresh token issued to ``user_id``; anything else is refused."""
        payload = AuthService.verify_token(token)
        if payload.get("type") != "refresh" or payload.get("sub") != user_id:
            raise AccessRedirect(401, "Invalid refresh token", SIGN_IN_PATH)
        jti = payload.get("jti")
        if jti and not await AuthService.is_token_revoked(jti, db):
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
            await AuthService.revoke_token(jti, user_id, expires_at, db)


# ============================================================
# ROLE RESOLVER
# ============================================================

async def resolve_role(db: AsyncSession, user_id: str) -> AppRole:
    """Single effective role of a user; regular_user when nothing is assigned."""
    stmt = select(UserRoleAssignment.role).where(UserRoleAssignment.user_id == user_id)
    result = await db.execute(stmt)
    roles = [AppRole(r) for r in result.scalars().all()]
    if not roles:
        return AppRole.REGULAR_USER
    return max(roles, key=lambda r: ROLE_PRECEDENCE[r])


async def has_role(db: AsyncSession, user_id: str, role: AppRole) -> bool:
    """Store-level check: does the user hold this exact role row."""
    stmt = (
        select(UserRoleAssignment.id)
        .where(UserRoleAssignment.user_id == user_id)
        .where(UserRoleAssignment.role == role)
    )
    result = await db.execute(stmt)
    return result.first() is not None


async def set_user_role(db: AsyncSession, email: str, role: AppRole) -> Profile:
    """Replace whatever roles the user holds with ``role`` (out-of-band only)."""
    result = await db.execute(select(Profile).where(Profile.email == email))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise LookupError(f"No profile with email {email}")

    await db.execute(delete(UserRoleAssignment).where(UserRoleAssignment.user_id == profile.id))
    db.add(UserRoleAssignment(user_id=profile.id, role=role))
    await db.commit()
    logger.info(f"Role of user {profile.id} set to {role.value}")
    return profile


# ============================================================
# ACCESS GATE
# ============================================================

def evaluate_access(context: SessionContext, required_role: Optional[AppRole] = None) -> AccessDecision:
    """Decide what a protected page does for this session.

    Pending resolution never redirects; an anonymous session goes to sign-in;
    a session lacking the required role (admins always pass) goes home.
    """
    if context.loading:
        return AccessDecision(outcome=AccessOutcome.LOADING)
    if context.user is None:
        return AccessDecision(outcome=AccessOutcome.REDIRECT, redirect_to=SIGN_IN_PATH)
    if required_role is not None and context.role not in (required_role, AppRole.ADMIN):
        return AccessDecision(outcome=AccessOutcome.REDIRECT, redirect_to=HOME_PATH)
    return AccessDecision(outcome=AccessOutcome.ALLOW)


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def _user_from_token(token: str, db: AsyncSession) -> CurrentUser:
    payload = AuthService.verify_token(token)

    if payload.get("type") != "access":
        raise AccessRedirect(401, "Invalid token type", SIGN_IN_PATH)

    jti = payload.get("jti")
    if jti and await AuthService.is_token_revoked(jti, db):
        raise AccessRedirect(401, "Token has been revoked", SIGN_IN_PATH)

    user_id = payload.get("sub")
    if not user_id:
        raise AccessRedirect(401, "Invalid token", SIGN_IN_PATH)

    profile = await db.get(Profile, user_id)
    if not profile or not profile.is_active:
        raise AccessRedirect(401, "User not found or inactive", SIGN_IN_PATH)

    exp = payload.get("exp")
    return CurrentUser(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name or "",
        role=await resolve_role(db, profile.id),
        is_active=profile.is_active,
        token_jti=jti,
        token_expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    if credentials is None:
        raise AccessRedirect(status.HTTP_401_UNAUTHORIZED, "Not authenticated", SIGN_IN_PATH)
    return await _user_from_token(credentials.credentials, db)


async def get_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> SessionContext:
    """Session context for the request; anonymous when the token is missing or unusable."""
    if credentials is None:
        return SessionContext()
    try:
        user = await _user_from_token(credentials.credentials, db)
    except AccessRedirect as exc:
        logger.debug(f"Ignoring unusable session token: {exc.detail}")
        return SessionContext()
    return SessionContext(user=user, role=user.role)


def require_access(required_role: Optional[AppRole] = None):
    """Dependency factory: apply the access gate, refusing with the redirect target"""
    async def _check(context: SessionContext = Depends(get_session_context)) -> SessionContext:
        decision = evaluate_access(context, required_role)
        if decision.redirect_to == SIGN_IN_PATH:
            raise AccessRedirect(status.HTTP_401_UNAUTHORIZED, "Not authenticated", SIGN_IN_PATH)
        if decision.redirect_to == HOME_PATH:
            raise AccessRedirect(status.HTTP_403_FORBIDDEN, "Insufficient role privileges", HOME_PATH)
        return context
    return _check


async def require_editor(
    context: SessionContext = Depends(require_access()),
    db: AsyncSession = Depends(get_db_session),
) -> SessionContext:
    """Create operations: admin or technician, confirmed against the role table"""
    if not context.can_edit:
        raise AccessRedirect(status.HTTP_403_FORBIDDEN, "Insufficient role privileges", HOME_PATH)
    held: List[bool] = [await has_role(db, context.user.id, role) for role in EDITOR_ROLES]
    if not any(held):
        raise AccessRedirect(status.HTTP_403_FORBIDDEN, "Insufficient role privileges", HOME_PATH)
    return context
