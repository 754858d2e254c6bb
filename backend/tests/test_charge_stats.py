"""Tests for baseline statistics and currency rounding."""

import random
from decimal import Decimal

from claimscore.services.charge_stats import (
    Baseline, compute_category_stats, compute_provider_stats, sample_std_dev,
)
from claimscore.services.currency import round_half_up, to_cents


class TestCurrency:
    def test_round_half_up_rounds_halves_away_from_zero(self):
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.4999")) == 2
        assert round_half_up(0.5) == 1

    def test_to_cents(self):
        assert to_cents(Decimal("123.45")) == 12345
        assert to_cents(Decimal("10.005")) == 1001
        assert to_cents(None) == 0
        assert to_cents(Decimal("0")) == 0


class TestCategoryStats:
    def test_mean_and_sample_std_dev(self):
        rows = [("99213", 10000), ("99213", 10000), ("99213", 10000), ("99213", 30000)]
        stats = compute_category_stats(rows)["99213"]
        assert stats.count == 4
        assert stats.mean_cents == Decimal(15000)
        assert stats.std_dev_cents == Decimal(10000)
        assert stats.baseline() == Baseline(mean_cents=15000, std_dev_cents=10000)

    def test_single_claim_has_zero_std_dev(self):
        stats = compute_category_stats([("E0601", 99999)])["E0601"]
        assert stats.mean_cents == Decimal(99999)
        assert stats.std_dev_cents == 0

    def test_identical_charges_have_zero_std_dev(self):
        stats = compute_category_stats([("X", 500)] * 5)["X"]
        assert stats.std_dev_cents == 0

    def test_result_does_not_depend_on_row_order(self):
        rows = [("A", c) for c in (1999, 2501, 10000, 333, 76543, 12)]
        rows += [("B", c) for c in (100, 200, 300)]
        shuffled = rows[:]
        random.Random(7).shuffle(shuffled)
        assert compute_category_stats(rows) == compute_category_stats(shuffled)

    def test_rows_without_category_are_ignored(self):
        stats = compute_category_stats([(None, 500), ("A", 100)])
        assert list(stats) == ["A"]

    def test_empty_input(self):
        assert compute_category_stats([]) == {}

    def test_sample_std_dev_needs_two_values(self):
        assert sample_std_dev(1, 100, 10000) == 0
        assert sample_std_dev(0, 0, 0) == 0


class TestProviderStats:
    def test_groups_by_provider_and_type(self):
        rows = [
            ("PRV-2", "Lab", 1000),
            ("PRV-1", "Clinic", 1000),
            ("PRV-1", "Clinic", 3000),
            ("PRV-1", None, 500),
            (None, "Lab", 700),
        ]
        stats = compute_provider_stats(rows)
        assert [(s.provider_id, s.provider_type, s.count) for s in stats] == [
            ("PRV-1", None, 1),
            ("PRV-1", "Clinic", 2),
            ("PRV-2", "Lab", 1),
        ]
        assert stats[1].mean_cents == Decimal(2000)
