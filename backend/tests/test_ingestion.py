"""Tests for the ingestion pipeline: dedupe, baseline refresh, re-scoring and rollback."""

import pytest
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.models import ProcedureStat, ProviderStat
from claimscore.services.claim_repository import ClaimRepository
from claimscore.services.ingestion import IngestionError, IngestionPipeline
from claimscore.services.scoring_config import LEGACY_RULESET
from claimscore.upload.csv_reader import CsvValidationError


def _rows(*charges, procedure="99213", provider_type="Clinic", start=1):
    return [
        {
            "claim_id": f"C{start + i}",
            "claim_charge": f"{charge:.2f}",
            "procedure_code": procedure,
            "provider_id": "PRV-1",
            "provider_type": provider_type,
        }
        for i, charge in enumerate(charges)
    ]


@pytest.mark.asyncio
class TestIngestionPipeline:
    async def test_first_batch_builds_baselines_and_scores(self, db_session: AsyncSession):
        result = await IngestionPipeline(db_session).ingest(_rows(100, 100, 100, 300))

        assert (result.inserted, result.skipped, result.total_claims) == (4, 0, 4)
        assert result.procedures == 1
        assert result.batch_id.startswith("UPLOAD-")

        stat = (await db_session.execute(select(ProcedureStat))).scalar_one()
        assert stat.procedure_code == "99213"
        assert float(stat.avg_charge) == 150.0
        assert float(stat.std_dev) == 100.0
        assert stat.total_claims == 4

        claim = await ClaimRepository(db_session).get_claim("C4")
        assert claim.fraud_score == 61
        assert claim.fraud_category == "Medium"
        assert claim.fraud_reasons == [
            "charge ≥ 2.0× category average",
            "charge ≥ 1 SD above category average",
            "provider type risk +3",
        ]

    async def test_reingest_skips_duplicates(self, db_session: AsyncSession):
        pipeline = IngestionPipeline(db_session)
        await pipeline.ingest(_rows(100, 100, 100, 300))
        result = await pipeline.ingest(_rows(100, 100, 100, 300))

        assert (result.inserted, result.skipped, result.total_claims) == (0, 4, 4)
        assert await ClaimRepository(db_session).count_claims() == 4

    async def test_duplicate_only_batch_still_refreshes_derived_data(self, db_session: AsyncSession):
        pipeline = IngestionPipeline(db_session)
        await pipeline.ingest(_rows(100, 100, 100, 300))

        claim = await ClaimRepository(db_session).get_claim("C4")
        claim.fraud_score = 0
        claim.fraud_category = "Low"
        claim.fraud_reasons = []
        await db_session.execute(delete(ProcedureStat))
        await db_session.execute(delete(ProviderStat))
        await db_session.commit()

        result = await pipeline.ingest(_rows(100, 100, 100, 300))

        assert (result.inserted, result.skipped) == (0, 4)
        claim = await ClaimRepository(db_session).get_claim("C4")
        assert claim.fraud_score == 61
        assert claim.fraud_category == "Medium"
        assert claim.fraud_reasons[0] == "charge ≥ 2.0× category average"
        stat = (await db_session.execute(select(ProcedureStat))).scalar_one()
        assert float(stat.avg_charge) == 150.0
        assert stat.total_claims == 4
        assert len((await db_session.execute(select(ProviderStat))).scalars().all()) == 1

    async def test_unstorable_values_reject_whole_batch(self, db_session: AsyncSession):
        rows = _rows(100, 200)
        rows[1]["claim_charge"] = "1e30"
        rows.append({"claim_id": "X" * 80, "claim_charge": "10"})

        with pytest.raises(CsvValidationError) as exc_info:
            await IngestionPipeline(db_session).ingest(rows)

        assert exc_info.value.errors[0].startswith("Record 2: claim_charge '1e30'")
        assert exc_info.value.errors[1].startswith("Record 3: claim_id is 80 characters")
        assert await ClaimRepository(db_session).count_claims() == 0

    async def test_signed_identifiers_dedupe_on_their_own_value(self, db_session: AsyncSession):
        rows = [{"claim_id": "-1001", "claim_charge": "10", "procedure_code": "+A1"}]
        pipeline = IngestionPipeline(db_session)
        await pipeline.ingest(rows)
        result = await pipeline.ingest(rows)

        assert result.skipped == 1
        assert (await ClaimRepository(db_session).get_claim("-1001")) is not None
        stat = (await db_session.execute(select(ProcedureStat))).scalar_one()
        assert stat.procedure_code == "+A1"

    async def test_duplicates_within_one_batch(self, db_session: AsyncSession):
        rows = _rows(100, 200)
        rows[1]["claim_id"] = "C1"
        result = await IngestionPipeline(db_session).ingest(rows)
        assert (result.inserted, result.skipped) == (1, 1)

    async def test_new_batch_rescores_existing_claims(self, db_session: AsyncSession):
        pipeline = IngestionPipeline(db_session)
        await pipeline.ingest(_rows(100, 100, 100, 300))
        await pipeline.ingest(_rows(100, 100, 100, 100, start=5))

        claim = await ClaimRepository(db_session).get_claim("C4")
        # mean 125.00, std 70.71 -> ratio 2.4 (+48), z 2.47 (+18), clinic (+3)
        assert claim.fraud_score == 69

        stat = (await db_session.execute(select(ProcedureStat))).scalar_one()
        assert float(stat.avg_charge) == 125.0
        assert stat.total_claims == 8

    async def test_high_risk_count(self, db_session: AsyncSession):
        rows = _rows(*([100] * 9), provider_type="Hospital")
        rows += _rows(1000, provider_type="DME", start=10)
        result = await IngestionPipeline(db_session).ingest(rows)

        assert result.high_risk == 1
        claim = await ClaimRepository(db_session).get_claim("C10")
        assert claim.fraud_score == 90
        assert claim.fraud_category == "High"

    async def test_provider_stats_rebuilt(self, db_session: AsyncSession):
        rows = _rows(100, 300)
        rows.append({"claim_id": "L1", "claim_charge": "50", "provider_id": "PRV-2", "provider_type": "Lab"})
        result = await IngestionPipeline(db_session).ingest(rows)

        assert result.providers == 2
        stats = {
            s.provider_id: s
            for s in (await db_session.execute(select(ProviderStat))).scalars()
        }
        assert stats["PRV-1"].total_claims == 2
        assert float(stats["PRV-1"].avg_claim_charge) == 200.0
        assert stats["PRV-2"].provider_type == "Lab"

    async def test_treatment_keys_baseline_when_code_missing(self, db_session: AsyncSession):
        rows = [
            {"claim_id": "T1", "claim_charge": "80", "treatment": "Physiotherapy"},
            {"claim_id": "T2", "claim_charge": "120", "treatment": "Physiotherapy"},
        ]
        await IngestionPipeline(db_session).ingest(rows)

        stat = (await db_session.execute(select(ProcedureStat))).scalar_one()
        assert stat.procedure_code == "Physiotherapy"
        assert float(stat.avg_charge) == 100.0

    async def test_rows_without_claim_id_get_stable_ids(self, db_session: AsyncSession):
        rows = [{"claim_charge": "10.00", "procedure_code": "A"}]
        pipeline = IngestionPipeline(db_session)
        first = await pipeline.ingest(rows)
        second = await pipeline.ingest(rows)

        assert first.inserted == 1
        assert second.skipped == 1
        _, items = await ClaimRepository(db_session).list_claims()
        assert items[0].claim_id.startswith("ROW-")

    async def test_ruleset_is_applied(self, db_session: AsyncSession):
        await IngestionPipeline(db_session, LEGACY_RULESET).ingest(_rows(100, 100, 100, 300))
        claim = await ClaimRepository(db_session).get_claim("C4")
        # ratio 2.0 (> 1.5), z 1.5 (not > 2)
        assert claim.fraud_score == 40
        assert claim.fraud_reasons == ["Claim charge significantly higher than average."]

    async def test_failure_rolls_back_whole_run(self, db_session: AsyncSession, monkeypatch):
        pipeline = IngestionPipeline(db_session)
        await pipeline.ingest(_rows(100, 100))

        async def _boom(self, stats):
            raise RuntimeError("disk full")

        monkeypatch.setattr(ClaimRepository, "replace_provider_stats", _boom)
        with pytest.raises(IngestionError, match="disk full"):
            await IngestionPipeline(db_session).ingest(_rows(500, 700, start=3))

        repo = ClaimRepository(db_session)
        assert await repo.count_claims() == 2
        assert await repo.get_claim("C3") is None

    async def test_csv_without_charge_column_writes_nothing(self, db_session: AsyncSession):
        with pytest.raises(CsvValidationError, match="claim_charge"):
            await IngestionPipeline(db_session).ingest_csv(b"claim_id,procedure_code\nC1,99213\n")
        assert await ClaimRepository(db_session).count_claims() == 0

    async def test_ingest_csv(self, db_session: AsyncSession):
        content = b"Claim ID,Billed Amount,CPT,Provider Type\nC1,100.00,99213,Clinic\nC2,300.00,99213,Clinic\n"
        result = await IngestionPipeline(db_session).ingest_csv(content)
        assert result.inserted == 2
        claim = await ClaimRepository(db_session).get_claim("C2")
        assert claim.procedure_code == "99213"
