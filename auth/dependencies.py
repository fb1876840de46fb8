"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Authenticated routes take an `Authorization: Bearer <access token>` header.
The token is verified locally (signature + expiry) with no database lookup;
the resulting AccessTokenClaims are attached to request.state.claims for
downstream handlers and returned to the route.

get_current_claims() raises HTTP 401 if the request is not authenticated.
Public routes simply do not declare it; a header sent to them is ignored.

Failure messages are deliberately coarse: a missing header is reported as
such, but a tampered, malformed, wrongly-signed or expired token all produce
the same "Invalid or expired token" response.

Layer rule: no imports from api/ or reports/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import AccessTokenClaims
from auth.tokens import decode_access_token

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None
    return auth_header[len(_BEARER_PREFIX) :].strip() or None


def get_current_claims(request: Request) -> AccessTokenClaims:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: AccessTokenClaims = Depends(get_current_claims)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Missing or invalid authorization header"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    claims = decode_access_token(token)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or expired token"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.claims = claims
    return claims
