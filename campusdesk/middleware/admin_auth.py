"""
Admin API Authentication

API key check for the operational endpoints under /api/v1/admin.
"""
import hmac
from typing import Annotated, Optional

from fastapi import Header, HTTPException, status

from campusdesk.config import get_settings
from campusdesk.utils.logger import get_logger

logger = get_logger(__name__)


def verify_admin_key(
    api_key: Annotated[Optional[str], Header(alias="X-Admin-API-Key")] = None
) -> bool:
    """
    Verify the admin API key from request headers.

    Raises:
        HTTPException: 401 if the key is missing or wrong, 500 if no key is configured
    """
    if not api_key:
        logger.warning("Admin API request missing API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    admin_api_key = get_settings().admin_api_key
    if not admin_api_key:
        logger.error("ADMIN_API_KEY not configured, refusing admin request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin authentication not configured"
        )

    if not hmac.compare_digest(api_key, admin_api_key):
        logger.warning("Admin API request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    return True
