"""
Caller identity

The service does no authentication; it only needs a stable identifier
for the caller, which the fronting layer passes in the X-User-Id header.
"""
from typing import Optional

from fastapi import Header, Request

ANONYMOUS_USER_ID = "anonymous"


def resolve_caller_id(raw: Optional[str]) -> str:
    """Normalize a raw identifier, mapping missing or blank to anonymous"""
    if raw is None or not raw.strip():
        return ANONYMOUS_USER_ID
    return raw.strip()


async def get_caller_id(x_user_id: Optional[str] = Header(None)) -> str:
    """FastAPI dependency returning the caller's user id"""
    return resolve_caller_id(x_user_id)


def get_client_address(request: Request) -> str:
    """Network identity of the caller, used where the header cannot be trusted"""
    return request.client.host if request.client else "unknown"
