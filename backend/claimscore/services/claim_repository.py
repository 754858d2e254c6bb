"""
Claim Repository — persistence for claims and the derived aggregate tables.

All methods operate on the caller's session and never commit; the caller
owns the unit of work.
"""

import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.database import Base
from claimscore.models import Claim, ProcedureStat, ProviderStat
from claimscore.services.charge_stats import CategoryStats, ProviderStats
from claimscore.services.currency import round_half_up

logger = logging.getLogger(__name__)

FLUSH_EVERY = 500

# Descriptive columns covered by the free-text filter
SEARCH_COLUMNS = (
    Claim.claim_id,
    Claim.patient_id,
    Claim.provider_id,
    Claim.procedure_code,
    Claim.diagnosis,
    Claim.treatment,
)


def _cents_to_units(cents: Decimal) -> Decimal:
    return (cents / 100).quantize(Decimal("0.0001"))


class ClaimRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Ingestion writes ─────────────────────────────────────────────────

    async def existing_claim_ids(self) -> set[str]:
        result = await self.session.execute(select(Claim.claim_id))
        return {row[0] for row in result}

    async def add_claims(self, claims: list[Claim]) -> int:
        """Insert claims, flushing in batches. Returns count added."""
        batch = []
        for claim in claims:
            batch.append(claim)
            if len(batch) >= FLUSH_EVERY:
                self.session.add_all(batch)
                await self.session.flush()
                batch = []

        if batch:
            self.session.add_all(batch)
            await self.session.flush()

        return len(claims)

    async def all_claims(self) -> list[Claim]:
        result = await self.session.execute(select(Claim).order_by(Claim.id))
        return list(result.scalars())

    async def replace_procedure_stats(self, stats: Iterable[CategoryStats]) -> int:
        """Truncate procedure_stats and insert the freshly computed baselines."""
        await self.session.execute(delete(ProcedureStat))
        rows = [
            ProcedureStat(
                procedure_code=s.category,
                avg_charge=_cents_to_units(s.mean_cents),
                std_dev=_cents_to_units(s.std_dev_cents),
                total_claims=s.count,
            )
            for s in stats
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return len(rows)

    async def replace_provider_stats(self, stats: Iterable[ProviderStats]) -> int:
        """Truncate provider_stats and insert the freshly computed aggregates."""
        await self.session.execute(delete(ProviderStat))
        rows = [
            ProviderStat(
                provider_id=s.provider_id,
                provider_type=s.provider_type,
                total_claims=s.count,
                avg_claim_charge=_cents_to_units(s.mean_cents),
            )
            for s in stats
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return len(rows)

    # ── Admin ────────────────────────────────────────────────────────────

    async def reset(self) -> None:
        """Delete every claim and derived aggregate."""
        await self.session.execute(delete(ProviderStat))
        await self.session.execute(delete(ProcedureStat))
        await self.session.execute(delete(Claim))
        logger.warning("All claims, procedure stats and provider stats deleted")

    async def drop_schema(self) -> None:
        """Drop all tables and recreate them empty."""
        conn = await self.session.connection()
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        # Loaded rows no longer exist; new inserts reuse their primary keys
        self.session.expunge_all()
        logger.warning("Schema dropped and recreated")

    # ── Reads ────────────────────────────────────────────────────────────

    async def count_claims(self) -> int:
        return int((await self.session.execute(select(func.count()).select_from(Claim))).scalar() or 0)

    async def get_claim(self, claim_id: str) -> Claim | None:
        result = await self.session.execute(select(Claim).where(Claim.claim_id == claim_id))
        return result.scalar_one_or_none()

    async def list_claims(
        self,
        *,
        q: str | None = None,
        provider_type: str | None = None,
        page: int = 1,
        size: int = 20,
    ) -> tuple[int, list[Claim]]:
        """Filtered page of claims, highest fraud score first. Returns (total, items)."""
        query = select(Claim)
        if q:
            pattern = f"%{q.strip()}%"
            query = query.where(or_(*(col.ilike(pattern) for col in SEARCH_COLUMNS)))
        if provider_type:
            query = query.where(func.lower(Claim.provider_type) == provider_type.strip().lower())

        total = (await self.session.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar() or 0

        query = (
            query.order_by(Claim.fraud_score.desc(), Claim.claim_charge.desc(), Claim.claim_id.asc())
            .offset((page - 1) * size)
            .limit(size)
        )
        items = list((await self.session.execute(query)).scalars())
        return int(total), items

    async def metrics(self, high_threshold: int) -> dict:
        """Totals, average charge, flagged count/percent and band distribution."""
        total = await self.count_claims()

        avg_charge = (await self.session.execute(select(func.avg(Claim.claim_charge)))).scalar()
        flagged = (await self.session.execute(
            select(func.count()).select_from(Claim).where(Claim.fraud_score > high_threshold)
        )).scalar() or 0

        dist_rows = await self.session.execute(
            select(Claim.fraud_category, func.count())
            .where(Claim.fraud_category.is_not(None))
            .group_by(Claim.fraud_category)
        )
        distribution = {"low": 0, "medium": 0, "high": 0}
        for category, count in dist_rows:
            key = category.lower()
            if key in distribution:
                distribution[key] = int(count)

        return {
            "total_claims": total,
            "average_claim_charge": round_half_up(avg_charge) if avg_charge is not None else 0,
            "flagged_count": int(flagged),
            "flagged_percent": round_half_up(Decimal(100 * int(flagged)) / total) if total else 0,
            "distribution": distribution,
        }

    async def list_provider_stats(self, limit: int = 100) -> list[ProviderStat]:
        result = await self.session.execute(
            select(ProviderStat)
            .order_by(ProviderStat.total_claims.desc(), ProviderStat.provider_id.asc())
            .limit(limit)
        )
        return list(result.scalars())

    async def list_procedure_stats(self) -> list[ProcedureStat]:
        result = await self.session.execute(
            select(ProcedureStat).order_by(ProcedureStat.procedure_code.asc())
        )
        return list(result.scalars())
