"""
verify.py
---------
Purpose:
    Admin JWT verification (HS256, shared secret).

Notes:
    - Tokens are issued by the admin dashboard's login flow, not by this service.
    - Missing, invalid or expired tokens give 401; a valid token without an
      admin role gives 403.
    - A token is accepted when it verifies, is unexpired and carries
      role "admin" or "super_admin".
    - Provides `admin_auth_dependency` for the /api/admin routes.
"""

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from registration_api.config import Settings
from registration_api.dependencies import get_settings
from registration_api.errors import ForbiddenError, UnauthorizedError
from registration_api.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ADMIN_ROLES = {"admin", "super_admin"}

_security = HTTPBearer(auto_error=False)


def verify_jwt(token: str, secret: str, algorithm: str = "HS256") -> dict:
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"verify_exp": True, "require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.info("Rejected admin token", error=str(e))
        raise UnauthorizedError("Invalid token") from e


def admin_auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None:
        raise UnauthorizedError("Access token is required")

    if not settings.ADMIN_JWT_SECRET:
        logger.error("Admin route called but ADMIN_JWT_SECRET is not configured")
        raise UnauthorizedError("Admin authentication is not configured")

    claims = verify_jwt(credentials.credentials, settings.ADMIN_JWT_SECRET, settings.ADMIN_JWT_ALGORITHM)

    if claims.get("role") not in ADMIN_ROLES:
        logger.warning("Admin access denied", subject=claims.get("sub"), role=claims.get("role"))
        raise ForbiddenError("Insufficient permissions")

    return claims
