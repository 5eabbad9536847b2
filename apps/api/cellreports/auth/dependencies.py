from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from cellreports.auth.context import CallerContext
from cellreports.auth.utils import verify_token
from cellreports.core.errors import UnauthorizedError

security = HTTPBearer(auto_error=False)

REQUIRED_CLAIMS = ("sub", "account_id", "role")


def _parse_uuid(value: str, claim: str) -> UUID:
    try:
        return UUID(value)
    except (TypeError, ValueError):
        raise UnauthorizedError(f"Invalid token payload: {claim}")


async def get_current_caller(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CallerContext:
    """
    Resolve the bearer token into the caller's (user, account, role) triple.

    Also stashes the ids on ``request.state`` for request logging.
    """
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    payload = verify_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise UnauthorizedError("Invalid token")

    missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        raise UnauthorizedError(f"Invalid token payload: missing {', '.join(missing)}")

    caller = CallerContext(
        user_id=_parse_uuid(payload["sub"], "sub"),
        account_id=_parse_uuid(payload["account_id"], "account_id"),
        role=str(payload["role"]),
    )

    request.state.user_id = str(caller.user_id)
    request.state.account_id = str(caller.account_id)
    return caller
