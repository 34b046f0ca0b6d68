"""
API dependencies for FastAPI endpoints.
Services are created once at startup and attached to app.state.
"""

from fastapi import HTTPException, Path, Request, status

import structlog

from burn_tracker.cache import BurnStore
from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.scheduler.burn_scheduler import BurnScheduler
from burn_tracker.services.provider_pool import ProviderPool


logger = structlog.get_logger(__name__)


def get_burn_store(request: Request) -> BurnStore:
    """Get the burn record store."""
    return request.app.state.burn_store


def get_token_registry(request: Request) -> TokenRegistry:
    """Get the static token table."""
    return request.app.state.tokens


def get_scheduler(request: Request) -> BurnScheduler:
    """Get the burn scheduler."""
    return request.app.state.scheduler


def get_provider_pool(request: Request) -> ProviderPool:
    """Get the RPC provider pool."""
    return request.app.state.provider_pool


async def validate_token_param(
    request: Request,
    token: str = Path(..., description="Token symbol (case-insensitive)")
) -> str:
    """Validate token path parameter against the token table."""
    tokens = get_token_registry(request)
    if token not in tokens:
        logger.warning("Unknown token requested", token=token)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "UNKNOWN_TOKEN",
                "message": f"Unknown token: {token}"
            }
        )
    return token.lower()
