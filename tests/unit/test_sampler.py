"""
Unit tests for WeightedSampler.

Covers the Bernoulli roll edge cases, weighted picks and seed determinism.
"""

from collections import Counter

import pytest

from arcade.modules.shared.sampler import NO_PICK, WeightedSampler


class TestRoll:
    """Test percent rolls."""

    def test_zero_percent_never_succeeds(self, sampler):
        assert not any(sampler.roll(0) for _ in range(500))

    def test_negative_percent_never_succeeds(self, sampler):
        assert sampler.roll(-5) is False

    def test_hundred_percent_always_succeeds(self, sampler):
        assert all(sampler.roll(100) for _ in range(500))

    def test_over_hundred_percent_always_succeeds(self, sampler):
        assert sampler.roll(250) is True

    def test_half_percent_produces_both_outcomes(self, sampler):
        outcomes = {sampler.roll(50) for _ in range(200)}
        assert outcomes == {True, False}


class TestPickWeighted:
    """Test weight-proportional picks."""

    def test_single_positive_entry_always_picked(self, sampler):
        picks = {sampler.pick_weighted([(1, 0), (2, 7), (3, 0)]) for _ in range(100)}
        assert picks == {2}

    def test_all_zero_weights_return_no_pick(self, sampler):
        assert sampler.pick_weighted([(1, 0), (2, 0)]) == NO_PICK

    def test_empty_entries_return_no_pick(self, sampler):
        assert sampler.pick_weighted([]) == NO_PICK

    def test_negative_weights_are_ignored(self, sampler):
        picks = {sampler.pick_weighted([(1, -10), (2, 3)]) for _ in range(100)}
        assert picks == {2}

    def test_accepts_generators(self, sampler):
        picked = sampler.pick_weighted((i, 1 if i == 4 else 0) for i in range(1, 6))
        assert picked == 4

    @pytest.mark.slow
    def test_distribution_matches_weights(self):
        """10k draws of 70/25/5 stay within 3 points of the weights."""
        sampler = WeightedSampler(seed=42)
        draws = 10_000
        counts = Counter(
            sampler.pick_weighted([(1, 70), (2, 25), (3, 5)]) for _ in range(draws)
        )

        assert abs(counts[1] / draws - 0.70) < 0.03
        assert abs(counts[2] / draws - 0.25) < 0.03
        assert abs(counts[3] / draws - 0.05) < 0.03

    @pytest.mark.slow
    def test_chi_square_goodness_of_fit(self):
        """100k draws pass a chi-square test at alpha 0.01 (df=2, critical 9.210)."""
        weights = {1: 50, 2: 30, 3: 20}
        total = sum(weights.values())
        draws = 100_000
        sampler = WeightedSampler(seed=7)
        counts = Counter(sampler.pick_weighted(weights.items()) for _ in range(draws))

        statistic = sum(
            (counts[item_id] - draws * weight / total) ** 2 / (draws * weight / total)
            for item_id, weight in weights.items()
        )

        assert set(counts) == set(weights)
        assert statistic < 9.210


class TestSeeding:
    """Test reproducibility."""

    def test_same_seed_same_sequence(self):
        a = WeightedSampler(seed=99)
        b = WeightedSampler(seed=99)
        entries = [(1, 10), (2, 20), (3, 30)]

        assert [a.pick_weighted(entries) for _ in range(50)] == [
            b.pick_weighted(entries) for _ in range(50)
        ]

    def test_reseed_restarts_sequence(self):
        sampler = WeightedSampler(seed=5)
        first = [sampler.roll(50) for _ in range(30)]

        sampler.reseed(5)

        assert [sampler.roll(50) for _ in range(30)] == first
        assert sampler.seed == 5

    def test_config_seed_used_when_no_seed_given(self, mocker):
        mocker.patch("arcade.modules.shared.sampler.Config.RNG_SEED", 777)
        assert WeightedSampler().seed == 777
