"""Security middleware: rate limiting and API key authentication."""

import logging
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from fifarank.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def get_rate_limit_key(request: Request) -> str:
    """
    Generate rate limit key based on IP and optional API key.

    Authenticated requests get a separate bucket.
    """
    api_key = request.headers.get(settings.API_KEY_HEADER)
    if settings.API_KEY and api_key == settings.API_KEY:
        return f"authenticated:{api_key[:8]}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_rate_limit_key)

# API Key header for write endpoints
api_key_header = APIKeyHeader(name=settings.API_KEY_HEADER, auto_error=False)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> bool:
    """
    Verify API key for write endpoints.

    Empty API_KEY allows all requests (development convenience).
    """
    expected = get_settings().API_KEY
    if not expected:
        return True

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail=f"Missing API key. Provide it via {settings.API_KEY_HEADER} header.",
        )

    if api_key != expected:
        logger.warning("Invalid API key attempt from request")
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True
