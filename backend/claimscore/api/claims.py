"""
Claims API — CSV upload (ingestion run), scored claim listing and detail.
"""

import logging
import math

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.api.deps import get_db, get_scoring_config
from claimscore.config import settings
from claimscore.schemas.schemas import ClaimDetail, ClaimItem, ClaimListResponse, UploadResponse
from claimscore.services.claim_repository import ClaimRepository
from claimscore.services.ingestion import IngestionError, IngestionPipeline
from claimscore.services.scoring_config import ScoringConfig
from claimscore.upload.csv_reader import CsvValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/claims", tags=["claims"])


# ---------------------------------------------------------------------------
# GET /api/claims: paginated, filterable list ordered by fraud score
# ---------------------------------------------------------------------------

@router.get("", response_model=ClaimListResponse)
async def list_claims(
    q: str | None = Query(None, description="Free-text filter over ids, codes and diagnosis"),
    provider_type: str | None = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(settings.default_page_size, ge=1),
    db: AsyncSession = Depends(get_db),
) -> ClaimListResponse:
    """Return a page of scored claims, highest fraud score (then charge) first."""
    size = min(size, settings.max_page_size)
    try:
        total, claims = await ClaimRepository(db).list_claims(
            q=q, provider_type=provider_type, page=page, size=size,
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to list claims")
        raise HTTPException(status_code=500, detail=f"Failed to list claims: {exc}")

    return ClaimListResponse(
        total=total,
        page=page,
        size=size,
        pages=math.ceil(total / size) if total else 0,
        items=[ClaimItem.model_validate(c) for c in claims],
    )


# ---------------------------------------------------------------------------
# POST /api/claims/upload: run the ingestion pipeline over a CSV file
# ---------------------------------------------------------------------------

@router.post("/upload", response_model=UploadResponse)
async def upload_claims(
    file: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    config: ScoringConfig = Depends(get_scoring_config),
) -> UploadResponse:
    """Ingest a CSV batch: insert new claims, rebuild baselines, re-score everything."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    content = await file.read()
    pipeline = IngestionPipeline(db, config)
    try:
        result = await pipeline.ingest_csv(content, max_bytes=settings.max_upload_mb * 1024 * 1024)
    except CsvValidationError as exc:
        logger.info("Rejected upload %s: %s", file.filename, exc)
        raise HTTPException(status_code=400, detail=exc.errors)
    except IngestionError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return UploadResponse(
        inserted=result.inserted,
        skipped=result.skipped,
        total=result.total_claims,
        batch_id=result.batch_id,
    )


# ---------------------------------------------------------------------------
# GET /api/claims/{claim_id}
# ---------------------------------------------------------------------------

@router.get("/{claim_id}", response_model=ClaimDetail)
async def get_claim(claim_id: str, db: AsyncSession = Depends(get_db)) -> ClaimDetail:
    claim = await ClaimRepository(db).get_claim(claim_id)
    if claim is None:
        raise HTTPException(status_code=404, detail=f"Claim {claim_id} not found")
    return ClaimDetail.model_validate(claim)
