"""
API key authentication for the trigger API.
"""

import secrets

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = structlog.get_logger(__name__)

security = HTTPBearer()


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Verify the bearer API key against the configured keys.

    Raises:
        HTTPException: 401 if the key is not accepted
    """
    api_key = credentials.credentials
    valid_api_keys = request.app.state.config.api_key_list()

    if not any(secrets.compare_digest(api_key, key) for key in valid_api_keys):
        logger.warning("Invalid API key attempted", api_key=api_key[:4] + "...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return api_key
