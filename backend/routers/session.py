# routers/session.py - Session context and access-gate decisions
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from auth import (
    AccessDecision, SessionContext, ROUTE_ROLES,
    evaluate_access, get_session_context,
)
from models import AppRole

router = APIRouter(prefix="/api/v1/session", tags=["Session"])


@router.get("")
async def get_session(context: SessionContext = Depends(get_session_context)):
    """Current session; anonymous callers get an unauthenticated context"""
    user = None
    if context.user is not None:
        user = {
            "id": context.user.id,
            "email": context.user.email,
            "full_name": context.user.full_name,
        }
    return {
        "authenticated": context.user is not None,
        "user": user,
        "role": context.role.value,
        "can_edit": context.can_edit,
        "loading": context.loading,
    }


@router.get("/gate", response_model=AccessDecision)
async def check_gate(
    path: Optional[str] = Query(default=None, description="Application page, e.g. /instruments"),
    required_role: Optional[AppRole] = None,
    context: SessionContext = Depends(get_session_context),
):
    """Evaluate the access gate for a page without refusing the request"""
    if path is not None:
        if path not in ROUTE_ROLES:
            raise HTTPException(status_code=404, detail=f"Unknown page: {path}")
        required_role = required_role or ROUTE_ROLES[path]
    return evaluate_access(context, required_role)
