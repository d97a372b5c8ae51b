"""
Request ownership resolution.

Every itinerary belongs to an owner. Authenticated callers send a bearer JWT
whose `sub` claim is the user id; everyone else is attributed to a guest
session, either the one named in the X-Guest-Session header or a freshly
minted one.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from travel_agent.core.config import JWT_ALGORITHM, JWT_SECRET

GUEST_PREFIX = "guest:"

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Owner:
    user_id: str
    is_guest: bool


def guest_owner(session: str | None = None) -> Owner:
    session = (session or "").strip() or uuid.uuid4().hex
    return Owner(user_id=f"{GUEST_PREFIX}{session}", is_guest=True)


def create_access_token(user_id: str, expires_in_hours: int = 24, **claims) -> str:
    payload = {
        "sub": user_id,
        "exp": datetime.utcnow() + timedelta(hours=expires_in_hours),
        **claims,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the `sub` claim of a valid token, raising 401 otherwise."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid authentication token: {str(e)}")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return str(sub)


async def get_current_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    x_guest_session: str | None = Header(default=None),
) -> Owner:
    if credentials is not None:
        return Owner(user_id=decode_access_token(credentials.credentials), is_guest=False)
    return guest_owner(x_guest_session)
