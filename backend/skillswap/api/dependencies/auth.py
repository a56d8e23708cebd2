# backend/skillswap/api/dependencies/auth.py
"""
Acting-user dependency.

Authentication is handled upstream; the gateway forwards the authenticated
user's id in the ``X-User-Id`` header.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """Return the acting user's id or reject the call with 401."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": "Missing acting user",
                "code": "UNAUTHENTICATED",
                "details": {"header": USER_ID_HEADER},
            },
        )
    return x_user_id.strip()
