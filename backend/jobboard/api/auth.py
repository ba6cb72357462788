"""
Authentication dependency for recruiter-only endpoints.

Candidates use the public endpoints (published listings, submit, uploads)
without credentials. Everything else requires a token, sent either as the
``auth_token`` httpOnly cookie or as ``Authorization: Bearer <token>``,
matching one of the configured ``AUTH_TOKENS``.
"""
import logging
from typing import Optional

from fastapi import Cookie, Header, HTTPException

from jobboard.config import settings

logger = logging.getLogger(__name__)

DEV_PRINCIPAL = "dev"


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_auth(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None),
) -> str:
    """
    Dependency that rejects unauthenticated requests.

    DEV MODE: with ``debug`` on and no tokens configured every request is
    let through.

    Returns:
        str: the accepted token (or "dev" in bypass mode)

    Raises:
        HTTPException 401: missing or unknown token
    """
    accepted = settings.get_auth_tokens()
    if not accepted:
        if settings.debug:
            return DEV_PRINCIPAL
        logger.error("Rejecting protected request: no AUTH_TOKENS configured")
        raise HTTPException(status_code=401, detail="Authentication is not configured")

    token = auth_token or _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if token not in accepted:
        logger.warning("Rejected request with unknown auth token")
        raise HTTPException(status_code=401, detail="Invalid token.")
    return token
