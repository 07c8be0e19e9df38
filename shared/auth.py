"""
JWT validation and requester resolution for Supabase Auth.
Supports both HS256 (legacy) and ES256 (JWKS) token verification.
"""

import os
import base64
import jwt
from jwt import PyJWKClient
import logging
from typing import Any, Dict, Optional
import azure.functions as func

from .config import get_supabase_url
from .errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

# Set by App Service authentication in front of the function app
PRINCIPAL_HEADER = "x-ms-client-principal-id"


class UnauthorizedError(ServiceError):
    """Raised when authentication fails."""
    status_code = 401


def get_user_from_token(req: func.HttpRequest) -> dict:
    """
    Extract and validate user from Authorization header.
    Supports both ES256 (JWKS) and HS256 (legacy) tokens.

    Args:
        req: The HTTP request object

    Returns:
        dict with user info: {"id": str, "email": str, "role": str}

    Raises:
        UnauthorizedError: If token is missing, expired, or invalid
    """
    auth_header = req.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Missing or invalid Authorization header")

    token = auth_header[7:]

    try:
        try:
            unverified_header = jwt.get_unverified_header(token)
            token_alg = unverified_header.get('alg')
        except jwt.exceptions.DecodeError as e:
            logger.warning(f"Could not read token header: {e}")
            raise UnauthorizedError("Invalid token format")

        if token_alg == "ES256":
            payload = _verify_es256_token(token)
        elif token_alg == "HS256":
            payload = _verify_hs256_token(token)
        else:
            logger.error(f"Unsupported algorithm: {token_alg}")
            raise UnauthorizedError(f"Unsupported token algorithm: {token_alg}")

        return {
            "id": payload["sub"],
            "email": payload.get("email"),
            "role": payload.get("role", "authenticated")
        }

    except UnauthorizedError:
        raise
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise UnauthorizedError("Token expired")
    except jwt.InvalidAudienceError:
        logger.warning("Invalid audience in token")
        raise UnauthorizedError("Invalid token audience")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        raise UnauthorizedError("Invalid token")
    except Exception as e:
        logger.error(f"Token verification error: {str(e)}")
        raise UnauthorizedError("Token verification failed")


def _decode_options() -> Dict[str, Any]:
    return {
        "verify_signature": True,
        "verify_aud": True,
        "verify_exp": True,
        "require": ["sub", "exp", "aud"]
    }


def _verify_es256_token(token: str) -> dict:
    """Verify an ES256 token using the project's JWKS endpoint."""
    jwks_url = f"{get_supabase_url()}/auth/v1/.well-known/jwks.json"
    jwks_client = PyJWKClient(jwks_url, cache_keys=True)
    signing_key = jwks_client.get_signing_key_from_jwt(token)

    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["ES256"],
        audience="authenticated",
        options=_decode_options()
    )


def _verify_hs256_token(token: str) -> dict:
    """Verify an HS256 token using the static JWT secret (legacy)."""
    secret = os.environ.get("SUPABASE_JWT_SECRET")
    if not secret:
        raise ValueError("SUPABASE_JWT_SECRET not set for HS256 verification")

    # Handle base64-encoded secrets
    try:
        if secret.endswith('='):
            jwt_secret = base64.b64decode(secret)
        else:
            jwt_secret = secret.encode('utf-8')
    except Exception:
        jwt_secret = secret.encode('utf-8')

    return jwt.decode(
        token,
        jwt_secret,
        algorithms=["HS256"],
        audience="authenticated",
        options=_decode_options()
    )


def get_requester_id(
    req: func.HttpRequest,
    body: Optional[Dict[str, Any]] = None,
    source: str = "token"
) -> str:
    """
    Resolve the id of the user making the request.

    Args:
        req: The HTTP request object
        body: Parsed JSON body (used when source is "body")
        source: "token" (Bearer JWT), "header" (platform principal header)
            or "body" (``userId`` field)

    Returns:
        The requester's user id

    Raises:
        UnauthorizedError: If the token or principal header is missing
        ValidationError: If the body carries no userId
    """
    if source == "token":
        return get_user_from_token(req)["id"]

    if source == "header":
        user_id = (req.headers.get(PRINCIPAL_HEADER) or "").strip()
        if not user_id:
            raise UnauthorizedError("Missing client principal header")
        return user_id

    user_id = (body or {}).get("userId")
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("userId is required")
    return user_id.strip()
