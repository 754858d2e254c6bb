"""
Pydantic schemas for API request/response models.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict


# ── Pagination ──

class PaginatedResponse(BaseModel):
    total: int
    page: int
    size: int
    pages: int


# ── Claims ──

class ClaimItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    claim_id: str
    patient_id: str | None = None
    provider_id: str | None = None
    provider_type: str | None = None
    procedure_code: str | None = None
    diagnosis: str | None = None
    treatment: str | None = None
    claim_charge: float
    claim_date: date | None = None
    fraud_score: int = 0
    fraud_category: str | None = None
    fraud_reasons: list[str] = []


class ClaimDetail(ClaimItem):
    age: int | None = None
    gender: str | None = None
    date_admitted: date | None = None
    date_discharged: date | None = None
    fraud_type: str | None = None
    batch_id: str | None = None


class ClaimListResponse(PaginatedResponse):
    items: list[ClaimItem]


class UploadResponse(BaseModel):
    inserted: int
    skipped: int
    total: int
    batch_id: str


# ── Metrics ──

class MetricsSummary(BaseModel):
    total_claims: int
    average_claim_charge: int
    flagged_count: int
    flagged_percent: int


class RiskDistribution(BaseModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class MetricsResponse(BaseModel):
    metrics: MetricsSummary
    distribution: RiskDistribution


# ── Aggregates ──

class ProviderStatItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider_id: str
    provider_type: str | None = None
    total_claims: int
    avg_claim_charge: float


class ProcedureStatItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    procedure_code: str
    avg_charge: float
    std_dev: float
    total_claims: int


# ── Admin ──

class AdminActionResponse(BaseModel):
    ok: bool
    message: str
