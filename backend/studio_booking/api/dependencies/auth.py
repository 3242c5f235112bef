# backend/studio_booking/api/dependencies/auth.py
"""
Caller identity.

Authentication happens upstream; the gateway in front of this service
forwards the authenticated user's id in ``X-User-Id``. The value is trusted
and treated as an opaque string.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """
    Return the authenticated user id.

    Raises:
        HTTPException: 401 when the header is missing or blank
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Authentication required", "code": "UNAUTHENTICATED"},
        )
    return user_id
