"""
Dashboard API — summary metrics plus provider and procedure aggregates.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.api.deps import get_db, get_scoring_config
from claimscore.schemas.schemas import (
    MetricsResponse,
    MetricsSummary,
    ProcedureStatItem,
    ProviderStatItem,
    RiskDistribution,
)
from claimscore.services.claim_repository import ClaimRepository
from claimscore.services.scoring_config import ScoringConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dashboard"])


# ---------------------------------------------------------------------------
# GET /api/metrics
# ---------------------------------------------------------------------------

@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    db: AsyncSession = Depends(get_db),
    config: ScoringConfig = Depends(get_scoring_config),
) -> MetricsResponse:
    """Total claims, average charge, flagged (High band) share and band distribution."""
    try:
        data = await ClaimRepository(db).metrics(config.high_threshold)
    except SQLAlchemyError as exc:
        logger.exception("Failed to compute metrics")
        raise HTTPException(status_code=500, detail=f"Failed to compute metrics: {exc}")

    return MetricsResponse(
        metrics=MetricsSummary(
            total_claims=data["total_claims"],
            average_claim_charge=data["average_claim_charge"],
            flagged_count=data["flagged_count"],
            flagged_percent=data["flagged_percent"],
        ),
        distribution=RiskDistribution(**data["distribution"]),
    )


# ---------------------------------------------------------------------------
# GET /api/providers/stats, /api/procedures/stats
# ---------------------------------------------------------------------------

@router.get("/providers/stats", response_model=list[ProviderStatItem])
async def get_provider_stats(
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> list[ProviderStatItem]:
    try:
        rows = await ClaimRepository(db).list_provider_stats(limit)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load provider stats")
        raise HTTPException(status_code=500, detail=f"Failed to load provider stats: {exc}")
    return [ProviderStatItem.model_validate(r) for r in rows]


@router.get("/procedures/stats", response_model=list[ProcedureStatItem])
async def get_procedure_stats(db: AsyncSession = Depends(get_db)) -> list[ProcedureStatItem]:
    try:
        rows = await ClaimRepository(db).list_procedure_stats()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load procedure stats")
        raise HTTPException(status_code=500, detail=f"Failed to load procedure stats: {exc}")
    return [ProcedureStatItem.model_validate(r) for r in rows]
