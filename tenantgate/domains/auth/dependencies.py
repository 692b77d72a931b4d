# tenantgate/domains/auth/dependencies.py
import logging
from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWKClient
from pydantic import ValidationError

from tenantgate.core.settings import settings
from tenantgate.shared.exceptions import AuthenticationMissingError

from .types import JwtPayload

logger = logging.getLogger(__name__)

_jwks_client = PyJWKClient(settings.JWKS_URL) if settings.JWKS_URL else None


def decode_jwt(token: str) -> JwtPayload:
    """
    Verifies a bearer token. Uses JWT_SECRET when configured, otherwise
    falls back to the JWKS endpoint.

    Raises:
        AuthenticationMissingError: If the token cannot be verified
    """
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}

    if settings.JWT_SECRET:
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                audience=settings.JWT_AUDIENCE,
                options=options,
            )
            return JwtPayload(**dict(payload))
        except (jwt.PyJWTError, ValidationError):
            raise AuthenticationMissingError("Invalid or expired token")

    # No way to verify the token means no authenticated identity
    if not _jwks_client:
        logger.error("Token verification is not configured")
        raise AuthenticationMissingError("Invalid or expired token")
    try:
        signing_key = _jwks_client.get_signing_key_from_jwt(token).key
        payload = jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
        return JwtPayload(**dict(payload))
    except (jwt.PyJWTError, ValidationError):
        raise AuthenticationMissingError("Invalid or expired token")


def get_optional_user_id(
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """
    Extracts the authenticated user ID from the Authorization header.

    Returns None when no bearer token is present so that the authorization
    gates can deny with their own AUTH_REQUIRED response.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization[len("Bearer ") :].strip()
    if not token:
        return None

    payload = decode_jwt(token)
    return payload.sub or None


def get_current_user_id(
    user_id: Optional[str] = Depends(get_optional_user_id),
) -> str:
    """Authenticated user ID, or 401 AUTH_REQUIRED."""
    if not user_id:
        raise AuthenticationMissingError()
    return user_id
