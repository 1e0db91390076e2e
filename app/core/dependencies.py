"""
Core dependencies for route protection and membership checking
"""

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.core.exceptions import Forbidden, NotFound, Unauthorized
from supabase import Client
from typing import List, Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

# auto_error is off so a missing header maps to 401 rather than FastAPI's default
security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authenticated")
    return auth_service.get_current_user(credentials.credentials)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[dict]:
    """Caller identity when a token is sent; anonymous callers get None"""
    if credentials is None or not credentials.credentials:
        return None
    return auth_service.get_current_user(credentials.credentials)


def get_access_cache(request: Request) -> Dict[str, Any]:
    """Request-scoped cache for access data (active group ids per user)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_user_group_ids(user_id: str, supabase: Client, cache: Optional[Dict[str, Any]] = None) -> List[str]:
    """Return ids of groups the user is an Active member of. Uses request-scoped cache when provided."""
    cache_key = f"group_ids:{user_id}"
    if cache is not None and cache_key in cache:
        return cache[cache_key]
    try:
        result = supabase.table("group_members")\
            .select("group_id")\
            .eq("user_id", user_id)\
            .eq("status", "Active")\
            .execute()
    except Exception as e:
        logger.error(f"Error getting user group ids: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    ids = [g["group_id"] for g in result.data or []]
    if cache is not None:
        cache[cache_key] = ids
    return ids


def _get_group_row(group_id: str, supabase: Client) -> dict:
    try:
        group_result = supabase.table("groups")\
            .select("id, owner_user_id, is_archived")\
            .eq("id", group_id)\
            .limit(1)\
            .execute()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not group_result.data:
        raise NotFound("Group not found")
    return group_result.data[0]


def check_group_member(
    group_id: str,
    user_data: dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
) -> dict:
    """Check if user is an active member of a group"""
    user_id = user_data["id"]
    group = _get_group_row(group_id, supabase)
    if group.get("is_archived"):
        raise NotFound("Group not found")

    member_result = supabase.table("group_members")\
        .select("id")\
        .eq("group_id", group_id)\
        .eq("user_id", user_id)\
        .eq("status", "Active")\
        .execute()
    if member_result.data:
        return user_data

    raise Forbidden("You must be a member of this group")
