"""
Ingestion Pipeline — normalize uploaded rows, store new claims, rebuild
procedure baselines, re-score every claim and rebuild provider stats, all
inside one unit of work.

Steps:
  1. Normalize raw rows into claim fields
  2. Bulk insert, skipping claim_ids already stored or repeated in the batch
  3. Truncate + rebuild procedure_stats from every stored claim
  4. Re-score every stored claim against the fresh baselines
  5. Truncate + rebuild provider_stats
  6. Commit (rollback on any failure)

Every run re-scores the whole claim set: new rows move each category's
baseline, so scores computed by earlier runs go stale.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Mapping
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.config import settings
from claimscore.middleware.metrics import (
    claims_ingested_total, ingestion_duration_seconds, ingestion_runs_total,
)
from claimscore.models import Claim
from claimscore.services.charge_stats import compute_category_stats, compute_provider_stats
from claimscore.services.claim_repository import ClaimRepository
from claimscore.services.currency import CENTS, to_cents
from claimscore.services.scoring_config import ScoringConfig, get_ruleset
from claimscore.services.scoring_engine import FraudCategory, ScoringEngine
from claimscore.upload.column_maps import auto_map_columns, unmapped_required
from claimscore.upload.csv_reader import CsvValidationError, read_csv_records

logger = logging.getLogger(__name__)

# One ingestion run at a time per process; re-scoring must see a stable claim set.
ingestion_lock = asyncio.Lock()

MAX_REPORTED_ERRORS = 20


class IngestionError(RuntimeError):
    """An ingestion run failed after parsing and was rolled back."""


@dataclass
class IngestionResult:
    inserted: int
    skipped: int
    total_claims: int
    batch_id: str
    procedures: int = 0
    providers: int = 0
    high_risk: int = 0

    def to_dict(self) -> dict:
        return {
            "inserted": self.inserted,
            "skipped": self.skipped,
            "total": self.total_claims,
            "batch_id": self.batch_id,
            "procedures": self.procedures,
            "providers": self.providers,
            "high_risk": self.high_risk,
        }


# ── Field parsing ────────────────────────────────────────────────────────────

def _parse_date(val: str | None) -> date | None:
    if not val or not val.strip():
        return None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(val.strip(), fmt).date()
        except ValueError:
            continue
    return None


# claim_charge is Numeric(12, 2): ten integer digits; compared before rounding to cents
MAX_CHARGE = Decimal("1e10")
_ROUNDS_PAST_MAX = MAX_CHARGE - Decimal("0.005")


def _parse_charge(val: str | None) -> Decimal:
    """Currency amount; anything unparseable counts as 0.

    Raises ValueError for amounts the claims table cannot store.
    """
    if not val or not val.strip():
        return Decimal("0.00")
    try:
        cleaned = val.strip().replace(",", "").replace("$", "")
        amount = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return Decimal("0.00")
    if not amount.is_finite():
        return Decimal("0.00")
    if abs(amount) >= _ROUNDS_PAST_MAX:
        raise ValueError(f"claim_charge {val.strip()!r} exceeds the maximum of {MAX_CHARGE:,.0f}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _parse_int(val: str | None) -> int | None:
    if not val or not val.strip():
        return None
    try:
        return int(float(val.strip()))
    except (ValueError, TypeError, OverflowError):
        return None


def _clean_text(val: str | None) -> str | None:
    """Strip surrounding whitespace; blank becomes None. Content is otherwise kept as-is."""
    if val is None:
        return None
    return val.strip() or None


def _check_lengths(fields: Mapping[str, object]) -> None:
    """Reject text values longer than their Claim column."""
    columns = Claim.__table__.c
    for name, value in fields.items():
        limit = getattr(columns[name].type, "length", None)
        if limit and isinstance(value, str) and len(value) > limit:
            raise ValueError(f"{name} is {len(value)} characters long, maximum is {limit}")


def _fallback_claim_id(row: Mapping[str, str]) -> str:
    """Deterministic identifier for rows that carry none, so re-uploads still dedupe."""
    raw = json.dumps(sorted((k, v) for k, v in row.items() if k is not None), default=str)
    return "ROW-" + hashlib.sha1(raw.encode()).hexdigest()[:16].upper()


def normalize_record(row: Mapping[str, str], mapping: Mapping[str, str | None]) -> dict:
    """Map one raw CSV row onto Claim column values.

    Raises ValueError when a value cannot be stored (oversized charge or text).
    """

    def _get(field: str) -> str | None:
        csv_col = mapping.get(field)
        if not csv_col:
            return None
        value = row.get(csv_col)
        return value if isinstance(value, str) or value is None else str(value)

    treatment = _clean_text(_get("treatment"))
    claim_id = _clean_text(_get("claim_id")) or _fallback_claim_id(row)

    fields = {
        "claim_id": claim_id,
        "patient_id": _clean_text(_get("patient_id")),
        "age": _parse_int(_get("age")),
        "gender": _clean_text(_get("gender")),
        "date_admitted": _parse_date(_get("date_admitted")),
        "date_discharged": _parse_date(_get("date_discharged")),
        "claim_date": _parse_date(_get("claim_date")),
        "diagnosis": _clean_text(_get("diagnosis")),
        "treatment": treatment,
        # Treatment doubles as the category key when no procedure code is supplied
        "procedure_code": _clean_text(_get("procedure_code")) or treatment,
        "provider_id": _clean_text(_get("provider_id")),
        "provider_type": _clean_text(_get("provider_type")),
        "claim_charge": _parse_charge(_get("claim_charge")),
        "fraud_type": _clean_text(_get("fraud_type")),
    }
    _check_lengths(fields)
    return fields


# ── Pipeline ─────────────────────────────────────────────────────────────────

class IngestionPipeline:
    def __init__(self, session: AsyncSession, config: ScoringConfig | None = None):
        self.session = session
        self.config = config or get_ruleset(settings.scoring_ruleset)
        self.repo = ClaimRepository(session)

    async def ingest_csv(self, file_content: bytes, max_bytes: int | None = None) -> IngestionResult:
        """Parse an uploaded CSV and run the pipeline over its rows.

        Raises CsvValidationError before any write when the file is unusable.
        """
        headers, rows = read_csv_records(file_content, max_bytes=max_bytes)
        mapping = auto_map_columns(headers)
        missing = unmapped_required(mapping)
        if missing:
            raise CsvValidationError([
                f"Missing required column(s): {', '.join(missing)} (found: {', '.join(headers)})"
            ])
        return await self.ingest(rows, mapping=mapping)

    async def ingest(
        self,
        records: Iterable[Mapping[str, str]],
        mapping: Mapping[str, str | None] | None = None,
        batch_id: str | None = None,
    ) -> IngestionResult:
        """Run one atomic ingestion over already-parsed rows.

        Raises CsvValidationError, before any write, for values that cannot be stored.
        """
        records = list(records)
        if mapping is None:
            headers: dict[str, None] = {}
            for row in records:
                headers.update(dict.fromkeys(row))
            mapping = auto_map_columns(list(headers))

        normalized: list[dict] = []
        errors: list[str] = []
        for index, row in enumerate(records, start=1):
            try:
                normalized.append(normalize_record(row, mapping))
            except ValueError as exc:
                errors.append(f"Record {index}: {exc}")
        if errors:
            raise CsvValidationError(errors[:MAX_REPORTED_ERRORS])

        batch_id = batch_id or f"UPLOAD-{uuid4().hex[:12].upper()}"

        async with ingestion_lock:
            t_start = time.time()
            try:
                result = await self._run(normalized, batch_id)
                await self.session.commit()
            except Exception as exc:
                await self.session.rollback()
                ingestion_runs_total.labels(status="failed").inc()
                logger.exception("Ingestion run %s failed and was rolled back", batch_id)
                raise IngestionError(f"Ingestion failed: {exc}") from exc
            duration = round(time.time() - t_start, 3)

        ingestion_runs_total.labels(status="completed").inc()
        ingestion_duration_seconds.observe(duration)
        claims_ingested_total.inc(result.inserted)
        logger.info(
            "Ingestion run %s: %d inserted, %d skipped, %d total, %d high risk in %.3fs",
            batch_id, result.inserted, result.skipped, result.total_claims,
            result.high_risk, duration,
        )
        return result

    async def _run(self, normalized: list[dict], batch_id: str) -> IngestionResult:
        # ── 2. Insert new claims ─────────────────────────────────────────
        existing = await self.repo.existing_claim_ids()
        new_claims: list[Claim] = []
        skipped = 0
        for fields in normalized:
            if fields["claim_id"] in existing:
                skipped += 1
                continue
            existing.add(fields["claim_id"])
            new_claims.append(Claim(**fields, batch_id=batch_id, fraud_score=0, fraud_reasons=[]))

        inserted = await self.repo.add_claims(new_claims)

        # ── 3. Rebuild procedure baselines from every stored claim ───────
        claims = await self.repo.all_claims()
        category_stats = compute_category_stats(
            (c.procedure_code, to_cents(c.claim_charge)) for c in claims
        )
        procedures = await self.repo.replace_procedure_stats(category_stats.values())

        # ── 4. Re-score all claims from an in-memory baseline map ────────
        engine = ScoringEngine(
            {code: stats.baseline() for code, stats in category_stats.items()},
            self.config,
        )
        distribution = engine.rescore(claims)

        # ── 5. Rebuild provider aggregates ───────────────────────────────
        provider_stats = compute_provider_stats(
            (c.provider_id, c.provider_type, to_cents(c.claim_charge)) for c in claims
        )
        providers = await self.repo.replace_provider_stats(provider_stats)

        await self.session.flush()

        return IngestionResult(
            inserted=inserted,
            skipped=skipped,
            total_claims=len(claims),
            batch_id=batch_id,
            procedures=procedures,
            providers=providers,
            high_risk=distribution[FraudCategory.HIGH],
        )
