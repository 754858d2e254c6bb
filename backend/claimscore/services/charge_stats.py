"""
Charge Statistics Engine

Groups claim charges (integer cents) by procedure code and computes the
arithmetic mean and the sample standard deviation used as a scoring
baseline. Aggregation runs on exact integer sums, so the result does not
depend on the order of the input rows:

  mean     = Σx / n
  variance = (n·Σx² − (Σx)²) / (n·(n − 1))     (0 when n < 2)
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from claimscore.services.currency import round_half_up


@dataclass(frozen=True)
class Baseline:
    """Category baseline in whole cents, as consumed by the scoring engine."""
    mean_cents: int | None
    std_dev_cents: int | None = None


@dataclass(frozen=True)
class CategoryStats:
    category: str
    mean_cents: Decimal
    std_dev_cents: Decimal
    count: int

    def baseline(self) -> Baseline:
        return Baseline(
            mean_cents=round_half_up(self.mean_cents),
            std_dev_cents=round_half_up(self.std_dev_cents),
        )


@dataclass(frozen=True)
class ProviderStats:
    provider_id: str
    provider_type: str | None
    count: int
    mean_cents: Decimal


def sample_std_dev(count: int, total: int, total_sq: int) -> Decimal:
    """Sample standard deviation from running sums; 0 for fewer than two values."""
    if count < 2:
        return Decimal("0")
    numerator = count * total_sq - total * total
    if numerator <= 0:
        return Decimal("0")
    variance = Decimal(numerator) / Decimal(count * (count - 1))
    return variance.sqrt()


def compute_category_stats(
    rows: Iterable[tuple[str | None, int]],
) -> dict[str, CategoryStats]:
    """Aggregate (category, charge_cents) rows into per-category statistics.

    Rows without a category are ignored. Empty input yields an empty dict.
    """
    sums: dict[str, list[int]] = defaultdict(lambda: [0, 0, 0])  # n, Σx, Σx²
    for category, cents in rows:
        if category is None:
            continue
        acc = sums[category]
        acc[0] += 1
        acc[1] += cents
        acc[2] += cents * cents

    return {
        category: CategoryStats(
            category=category,
            mean_cents=Decimal(total) / Decimal(count),
            std_dev_cents=sample_std_dev(count, total, total_sq),
            count=count,
        )
        for category, (count, total, total_sq) in sums.items()
    }


def compute_provider_stats(
    rows: Iterable[tuple[str | None, str | None, int]],
) -> list[ProviderStats]:
    """Aggregate (provider_id, provider_type, charge_cents) rows per provider pair."""
    sums: dict[tuple[str, str | None], list[int]] = defaultdict(lambda: [0, 0])
    for provider_id, provider_type, cents in rows:
        if provider_id is None:
            continue
        acc = sums[(provider_id, provider_type)]
        acc[0] += 1
        acc[1] += cents

    return [
        ProviderStats(
            provider_id=provider_id,
            provider_type=provider_type,
            count=count,
            mean_cents=Decimal(total) / Decimal(count),
        )
        for (provider_id, provider_type), (count, total) in sorted(
            sums.items(), key=lambda item: (item[0][0], item[0][1] or "")
        )
    ]
