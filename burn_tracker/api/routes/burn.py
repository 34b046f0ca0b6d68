"""
Burn data routes.

Serves the last stored record per token even when the latest run
failed for it; every record carries its age so consumers can judge
staleness themselves.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

import structlog

from burn_tracker.api.dependencies import (
    get_burn_store,
    get_provider_pool,
    get_scheduler,
    get_token_registry,
    validate_token_param,
)
from burn_tracker.api.schemas.burn import TokenInfo, TokenListData, TriggerJobData
from burn_tracker.api.schemas.common import SuccessResponse, create_success_response
from burn_tracker.cache import BurnStore
from burn_tracker.core.config import settings
from burn_tracker.core.exceptions import JobAlreadyRunningError
from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.scheduler.burn_scheduler import BurnScheduler
from burn_tracker.services.provider_pool import ProviderPool


logger = structlog.get_logger(__name__)

router = APIRouter()


def _age_seconds(document: Dict[str, Any], now: datetime) -> Optional[float]:
    try:
        last_updated = datetime.fromisoformat(document["lastUpdated"])
    except (KeyError, TypeError, ValueError):
        return None
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    return round((now - last_updated).total_seconds(), 1)


def with_freshness(document: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Copy of a stored record annotated with ageSeconds and stale."""
    now = now or datetime.now(timezone.utc)
    age = _age_seconds(document, now)
    annotated = dict(document)
    annotated["ageSeconds"] = age
    annotated["stale"] = age is None or age > settings.stale_after_seconds
    return annotated


@router.get(
    "/burn-data",
    response_model=SuccessResponse,
    summary="Get All Burn Data",
    description="Latest stored burn amounts for every tracked token"
)
async def get_all_burn_data(
    store: BurnStore = Depends(get_burn_store),
    tokens: TokenRegistry = Depends(get_token_registry)
):
    """Get burn data for every token that has a stored record."""
    documents = await store.get_many(tokens.symbols)
    if not documents:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "BURN_DATA_UNAVAILABLE",
                "message": "Burn data not yet available"
            }
        )

    now = datetime.now(timezone.utc)
    data = {symbol: with_freshness(document, now) for symbol, document in documents.items()}
    return create_success_response(
        data=data,
        message=f"Burn data for {len(data)} of {len(tokens)} tokens"
    )


@router.get(
    "/burn-data/{token}",
    response_model=SuccessResponse,
    summary="Get Token Burn Data",
    description="Latest stored burn amounts for one token"
)
async def get_token_burn_data(
    token: str = Depends(validate_token_param),
    store: BurnStore = Depends(get_burn_store)
):
    """Get burn data for a single token."""
    document = await store.get(token)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "BURN_DATA_NOT_FOUND",
                "message": f"No burn data for {token} yet"
            }
        )
    return create_success_response(data=with_freshness(document))


@router.get(
    "/tokens",
    response_model=SuccessResponse,
    summary="List Tokens",
    description="Tracked tokens and their contract addresses"
)
async def list_tokens(tokens: TokenRegistry = Depends(get_token_registry)):
    """List the token table."""
    data = TokenListData(
        total=len(tokens),
        tokens=[TokenInfo(symbol=t.symbol, address=t.address) for t in tokens.all()]
    )
    return create_success_response(data=data.model_dump())


@router.get(
    "/status",
    response_model=SuccessResponse,
    summary="Service Status",
    description="Scheduler state, latest run summary and RPC endpoint health"
)
async def get_status(
    probe: bool = Query(False, description="Probe every RPC endpoint before answering"),
    scheduler: BurnScheduler = Depends(get_scheduler),
    pool: ProviderPool = Depends(get_provider_pool),
    store: BurnStore = Depends(get_burn_store)
):
    """Get scheduler, run and provider status."""
    providers = await pool.health_check() if probe else pool.snapshot()
    return create_success_response(data={
        "scheduler": scheduler.get_status(),
        "providers": providers,
        "storage": await store.health_check(),
    })


@router.post(
    "/trigger-job",
    response_model=SuccessResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger Burn Job",
    description="Start a burn calculation run in the background"
)
async def trigger_job(
    scheduler: BurnScheduler = Depends(get_scheduler),
    tokens: TokenRegistry = Depends(get_token_registry)
):
    """Trigger a manual run unless one is already active."""
    try:
        scheduler.trigger_manual_run()
    except JobAlreadyRunningError as e:
        logger.warning("Manual trigger rejected, run already active")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": e.code,
                "message": e.message
            }
        )

    logger.info("Manual burn job triggered")
    return create_success_response(
        data=TriggerJobData(tokens=len(tokens)).model_dump(),
        message="Burn job started"
    )
