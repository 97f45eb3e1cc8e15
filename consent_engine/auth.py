"""
Administrator authentication for the consent log endpoints.

Listing, exporting, summarising and deleting consent records exposes
session ids and mutates the audit trail, so these routes require the
configured admin API key in the ``X-API-Key`` header. When no key is
configured the endpoints are closed to everyone.
"""

import logging

from fastapi import Request

from consent_engine.config import settings
from consent_engine.exceptions import AuthenticationError, AuthorizationError
from consent_engine.utils.security import api_key_matches

logger = logging.getLogger(__name__)


async def require_admin(request: Request) -> None:
    """
    FastAPI dependency guarding administrative routes.

    Raises:
        AuthenticationError: No API key was presented
        AuthorizationError: The key is wrong or administration is disabled
    """
    provided = request.headers.get(settings.admin_api_key_header)
    if not provided:
        logger.warning("Unauthenticated admin request to %s", request.url.path)
        raise AuthenticationError(f"{settings.admin_api_key_header} header required")

    if not settings.admin_api_key:
        logger.warning("Admin request to %s rejected: no admin API key configured", request.url.path)
        raise AuthorizationError("Consent log administration is disabled")

    if not api_key_matches(provided, settings.admin_api_key):
        logger.warning("Invalid admin API key for %s", request.url.path)
        raise AuthorizationError("Invalid API key")
