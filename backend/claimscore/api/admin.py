"""
Admin API — destructive resets used for demo re-runs.

POST /api/admin/reset   delete all claims, procedure stats and provider stats
POST /api/admin/drop    drop and recreate the whole schema
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.api.deps import get_db
from claimscore.schemas.schemas import AdminActionResponse
from claimscore.services.claim_repository import ClaimRepository
from claimscore.services.ingestion import ingestion_lock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/reset", response_model=AdminActionResponse)
async def reset_data(db: AsyncSession = Depends(get_db)) -> AdminActionResponse:
    async with ingestion_lock:
        try:
            await ClaimRepository(db).reset()
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Reset failed")
            raise HTTPException(status_code=500, detail=f"Failed to reset data: {exc}")
    return AdminActionResponse(ok=True, message="All tables truncated")


@router.post("/drop", response_model=AdminActionResponse)
async def drop_database(db: AsyncSession = Depends(get_db)) -> AdminActionResponse:
    async with ingestion_lock:
        try:
            await ClaimRepository(db).drop_schema()
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Drop failed")
            raise HTTPException(status_code=500, detail=f"Failed to drop database: {exc}")
    return AdminActionResponse(ok=True, message="Schema dropped and recreated")
