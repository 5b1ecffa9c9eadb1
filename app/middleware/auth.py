"""
RepCycle API - Authentication Middleware.

Bearer-token dependency for protected routes. Tokens are issued by the
identity service; the caller's user id is the token subject.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.services.auth import verify_token
from app.utils.errors import AuthenticationError


class JWTBearer(HTTPBearer):
    """
    HTTPBearer that resolves a verified token to its user id.

    Missing, malformed, expired and subject-less tokens all raise
    AuthenticationError (401).
    """

    def __init__(self):
        super().__init__(auto_error=False)

    async def __call__(self, request: Request) -> str:
        credentials: Optional[HTTPAuthorizationCredentials] = await super().__call__(request)
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthenticationError("Not authenticated", detail="Missing bearer token")

        payload = verify_token(credentials.credentials)
        if payload is None:
            raise AuthenticationError("Invalid token", detail="Invalid or expired token")

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError("Invalid token", detail="Token has no subject")
        return str(subject)


jwt_bearer = JWTBearer()


async def get_current_user_id(user_id: str = Depends(jwt_bearer)) -> str:
    """
    Dependency returning the authenticated user's id.

    Usage:
        @router.get("/protected")
        async def protected_route(user_id: str = Depends(get_current_user_id)):
            return {"user_id": user_id}
    """
    return user_id
