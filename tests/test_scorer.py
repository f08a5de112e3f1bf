"""Tests for the score and tier calculator."""

import itertools

import pytest

from src.processors.scorer import calculate_score, score_prospect, tier_for_score


class TestCalculateScore:
    """Tests for the composite score formula."""

    def test_rank_authority_and_form(self):
        """rank 8, DA 60, form, no spam -> 32 + 24 + 10."""
        result = score_prospect(8, 60, True, 0)
        assert result.score == 66
        assert result.tier == 2

    def test_no_signals_uses_neutral_baseline(self):
        result = score_prospect(None, None, False, 0)
        assert result.score == 25
        assert result.tier == 3

    def test_spam_penalty_clamps_to_zero(self):
        result = score_prospect(None, None, False, 100)
        assert result.score == 0
        assert result.tier == 4

    def test_rank_is_capped_at_ten(self):
        assert calculate_score(15, None, False, 0) == 40

    def test_single_known_signal_does_not_use_baseline(self):
        assert calculate_score(None, 50, False, 0) == 20
        assert calculate_score(0, None, False, 0) == 0

    def test_upper_clamp(self):
        assert calculate_score(10, 100, True, 0) == 90
        assert calculate_score(10, 150, True, 0) == 100

    def test_rounds_half_up(self):
        # 0.125 * 4 == 0.5 exactly
        assert calculate_score(0.125, None, False, 0) == 1

    def test_deterministic(self):
        first = [calculate_score(7.3, 41.7, True, 0) for _ in range(5)]
        assert len(set(first)) == 1


class TestTiers:
    """Tests for tier bands."""

    @pytest.mark.parametrize(
        "score,tier",
        [(100, 1), (70, 1), (69, 2), (40, 2), (39, 3), (20, 3), (19, 4), (0, 4)],
    )
    def test_band_edges(self, score, tier):
        assert tier_for_score(score) == tier

    def test_score_and_tier_always_agree(self):
        ranks = [None, 0, 2.5, 8, 10, 12]
        authorities = [None, 0, 33.3, 60, 100]
        for rank, da, form, spam in itertools.product(ranks, authorities, [True, False], [0, 100]):
            result = score_prospect(rank, da, form, spam)
            assert 0 <= result.score <= 100
            assert result.tier in (1, 2, 3, 4)
            assert result.tier == tier_for_score(result.score)
