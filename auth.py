"""Optional HS256 bearer-token check for the fill API.

Set PDF_FILL_JWT_SECRET (in .env) to require a token on every /api/* route
except the ones in PUBLIC_PATHS. Leave it empty and the API is open, which
is how a local single-user setup runs.
"""

from __future__ import annotations

import os

import jwt

JWT_SECRET: str = os.environ.get("PDF_FILL_JWT_SECRET", "")

PUBLIC_PATHS: frozenset[str] = frozenset({"/api/health"})


class AuthError(Exception):
    """The request carried no usable token. The message is safe to return."""


def auth_enabled() -> bool:
    return bool(JWT_SECRET)


def requires_auth(path: str) -> bool:
    return auth_enabled() and path.startswith("/api/") and path not in PUBLIC_PATHS


def check_authorization(header: str | None) -> dict:
    """Validate an ``Authorization: Bearer <token>`` header and return its claims.

    Tokens must be HS256-signed with JWT_SECRET and carry a ``sub`` claim.
    """
    scheme, _, token = (header or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Missing or invalid Authorization header.")
    try:
        return jwt.decode(token.strip(), JWT_SECRET, algorithms=["HS256"], options={"require": ["sub"]})
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError(f"Invalid token: {exc}") from exc
