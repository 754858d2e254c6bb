"""
Scoring rule sets.

A rule set is an immutable bundle of tiers, weights and band thresholds
handed to the scoring engine and classifier. Two are shipped:

  standard — ratio / z-score / absolute / metadata / provider-risk rules,
             High band at >= 76. This is the canonical model.
  legacy   — the first-release rules (ratio > 1.5 / > 1.2, z > 2, missing
             metadata), High band at >= 75. Kept so stored scores from that
             release can be reproduced.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class Tier:
    """One graduated step: fires when the measured value reaches `threshold`."""
    threshold: Decimal
    points: int
    reason: str


@dataclass(frozen=True)
class ScoringConfig:
    name: str
    # Tiers are ordered from the highest threshold down; only the first match applies.
    ratio_tiers: tuple[Tier, ...]
    z_tiers: tuple[Tier, ...]
    absolute_tiers: tuple[Tier, ...] = ()  # thresholds in cents
    inclusive: bool = True  # >= when True, > when False
    deviation_needs_mean: bool = False  # skip the z rule when the category mean is 0
    unknown_baseline_points: int = 0
    unknown_baseline_reason: str = "baseline average unknown"
    missing_provider_type_points: int = 10
    missing_provider_type_reason: str = "missing provider type"
    missing_category_points: int = 5
    missing_category_reason: str = "missing category code"
    provider_type_weights: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    high_threshold: int = 75  # scores strictly above are High
    medium_min: int = 26
    max_score: int = 100


STANDARD_RULESET = ScoringConfig(
    name="standard",
    ratio_tiers=(
        Tier(Decimal("2.5"), 60, "severe overcharge vs. category average"),
        Tier(Decimal("2.0"), 48, "charge ≥ 2.0× category average"),
        Tier(Decimal("1.5"), 36, "charge ≥ 1.5× category average"),
        Tier(Decimal("1.2"), 22, "charge ≥ 1.2× category average"),
        Tier(Decimal("1.0"), 8, "charge slightly above category average"),
    ),
    z_tiers=(
        Tier(Decimal("3"), 25, "charge ≥ 3 SD above category average"),
        Tier(Decimal("2"), 18, "charge ≥ 2 SD above category average"),
        Tier(Decimal("1"), 10, "charge ≥ 1 SD above category average"),
    ),
    absolute_tiers=(
        Tier(Decimal("200000"), 10, "high absolute charge (≥ $2,000)"),
        Tier(Decimal("100000"), 6, "elevated absolute charge (≥ $1,000)"),
    ),
    inclusive=True,
    unknown_baseline_points=8,
    provider_type_weights=MappingProxyType({
        "dme": 6,
        "durable medical equipment": 6,
        "lab": 5,
        "laboratory": 5,
        "pharmacy": 4,
        "clinic": 3,
        "hospital": 2,
    }),
    high_threshold=75,
    medium_min=26,
)

LEGACY_RULESET = ScoringConfig(
    name="legacy",
    ratio_tiers=(
        Tier(Decimal("1.5"), 40, "Claim charge significantly higher than average."),
        Tier(Decimal("1.2"), 20, "Claim charge moderately higher than average."),
    ),
    z_tiers=(
        Tier(Decimal("2"), 25, "Claim charge more than 2 SD above average."),
    ),
    inclusive=False,
    deviation_needs_mean=True,
    missing_provider_type_reason="Missing provider type data.",
    missing_category_reason="Missing procedure code data.",
    high_threshold=74,
    medium_min=26,
)

RULESETS: Mapping[str, ScoringConfig] = MappingProxyType({
    STANDARD_RULESET.name: STANDARD_RULESET,
    LEGACY_RULESET.name: LEGACY_RULESET,
})


def get_ruleset(name: str) -> ScoringConfig:
    try:
        return RULESETS[name]
    except KeyError:
        raise ValueError(f"Unknown scoring rule set: {name!r}") from None
