"""
Fraud Scoring Engine

Maps a claim's charge, its procedure baseline and its provider metadata to
an explainable 0-100 fraud score plus the ordered list of reasons.

Rules are evaluated in a fixed order and are additive:
  1. Overcharge ratio   charge / category mean (or an uncertainty bump when
                        the baseline is unknown)
  2. Deviation          z = (charge - mean) / std_dev
  3. Absolute charge    dollar-amount tiers
  4. Missing metadata   provider type, category code
  5. Provider risk      fixed weight per provider type
Final score = clamp(sum, 0, max_score).
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping

from claimscore.models import Claim
from claimscore.services.charge_stats import Baseline
from claimscore.services.currency import to_cents
from claimscore.services.scoring_config import STANDARD_RULESET, ScoringConfig, Tier

logger = logging.getLogger(__name__)


class FraudCategory(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class ScoreResult:
    score: int
    reasons: list[str] = field(default_factory=list)


def _reaches(value: Decimal, threshold: Decimal, inclusive: bool) -> bool:
    return value >= threshold if inclusive else value > threshold


def _first_tier(
    value: Decimal, scale: Decimal, tiers: Iterable[Tier], inclusive: bool,
) -> Tier | None:
    """Highest tier whose `threshold * scale` is reached by `value`."""
    for tier in tiers:
        if _reaches(value, tier.threshold * scale, inclusive):
            return tier
    return None


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def score_claim(
    charge_cents: int,
    baseline: Baseline | None,
    provider_type: str | None,
    category_key: str | None,
    config: ScoringConfig = STANDARD_RULESET,
) -> ScoreResult:
    """Score a single claim. Pure and deterministic."""
    points = 0
    reasons: list[str] = []
    charge = Decimal(charge_cents)

    mean = baseline.mean_cents if baseline else None
    std_dev = baseline.std_dev_cents if baseline else None

    # 1. Overcharge ratio. Comparing charge >= threshold * mean avoids dividing.
    if mean is not None and mean > 0:
        tier = _first_tier(charge, Decimal(mean), config.ratio_tiers, config.inclusive)
        if tier:
            points += tier.points
            reasons.append(tier.reason)
    elif config.unknown_baseline_points:
        points += config.unknown_baseline_points
        reasons.append(config.unknown_baseline_reason)

    # 2. Deviation from baseline
    if (
        mean is not None and std_dev is not None and std_dev > 0
        and (mean or not config.deviation_needs_mean)
    ):
        tier = _first_tier(charge - mean, Decimal(std_dev), config.z_tiers, config.inclusive)
        if tier:
            points += tier.points
            reasons.append(tier.reason)

    # 3. Absolute magnitude
    tier = _first_tier(charge, Decimal(1), config.absolute_tiers, True)
    if tier:
        points += tier.points
        reasons.append(tier.reason)

    # 4. Missing metadata
    if _blank(provider_type):
        points += config.missing_provider_type_points
        reasons.append(config.missing_provider_type_reason)
    if _blank(category_key):
        points += config.missing_category_points
        reasons.append(config.missing_category_reason)

    # 5. Provider-type risk
    if not _blank(provider_type):
        weight = config.provider_type_weights.get(provider_type.strip().lower(), 0)
        if weight:
            points += weight
            reasons.append(f"provider type risk +{weight}")

    return ScoreResult(score=min(max(points, 0), config.max_score), reasons=reasons)


def classify(score: int, config: ScoringConfig = STANDARD_RULESET) -> FraudCategory:
    """Classify a numeric score into a fraud band."""
    if score > config.high_threshold:
        return FraudCategory.HIGH
    elif score >= config.medium_min:
        return FraudCategory.MEDIUM
    return FraudCategory.LOW


class ScoringEngine:
    """Applies one rule set to stored claims using a per-run baseline map."""

    def __init__(
        self,
        baselines: Mapping[str, Baseline],
        config: ScoringConfig = STANDARD_RULESET,
    ):
        self.baselines = baselines
        self.config = config

    def score(self, claim: Claim) -> ScoreResult:
        baseline = self.baselines.get(claim.procedure_code) if claim.procedure_code else None
        return score_claim(
            to_cents(claim.claim_charge),
            baseline,
            claim.provider_type,
            claim.procedure_code,
            self.config,
        )

    def rescore(self, claims: Iterable[Claim]) -> Counter:
        """Overwrite derived fraud fields on every claim. Returns band counts."""
        distribution: Counter = Counter()
        for claim in claims:
            result = self.score(claim)
            category = classify(result.score, self.config)
            claim.fraud_score = result.score
            claim.fraud_category = category.value
            claim.fraud_reasons = list(result.reasons)
            distribution[category] += 1

        logger.debug(
            "Re-scored %d claims with rule set %s: %s",
            sum(distribution.values()), self.config.name, dict(distribution),
        )
        return distribution
