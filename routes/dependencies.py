"""
Shared route dependencies.

Authentication happens upstream; the gateway forwards the authenticated
user's id in the X-User-Id header.
"""

from typing import Optional

from fastapi import Header

from exceptions import UnauthorizedError


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> str:
    """Current user id, or 401 when the header is missing."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()
