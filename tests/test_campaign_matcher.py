"""Tests for campaign ranking."""

from datetime import datetime, timedelta, timezone

import pytest

from src.models.prospect import Campaign, Prospect
from src.processors.campaign_matcher import match_score, rank_campaigns, select_campaign

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def campaign(campaign_id: int, language: str = "fr", **fields) -> Campaign:
    fields.setdefault("created_at", NOW)
    return Campaign(id=campaign_id, name=f"campaign-{campaign_id}", language=language, **fields)


@pytest.fixture
def prospect():
    return Prospect(id=1, domain="example.fr", language="fr", country="FR", tier=2, category="blogger")


class TestMatchScore:
    def test_unfiltered_campaign_scores_base(self, prospect):
        assert match_score(prospect, campaign(1), NOW) == 100

    def test_category_filter_excluding_prospect_discards(self, prospect):
        assert match_score(prospect, campaign(1, category_filter=["media"]), NOW) is None
        assert match_score(prospect, campaign(2, category_filter=["blogger", "media"]), NOW) == 100

    def test_country_filter_bonus_or_discard(self, prospect):
        assert match_score(prospect, campaign(1, country_filter=["FR", "BE"]), NOW) == 150
        assert match_score(prospect, campaign(2, country_filter=["DE"]), NOW) is None

    def test_country_filter_discards_prospect_without_country(self, prospect):
        prospect = prospect.model_copy(update={"country": None})
        assert match_score(prospect, campaign(1, country_filter=["FR"]), NOW) is None

    def test_tier_above_threshold_discards(self, prospect):
        assert match_score(prospect, campaign(1, min_tier=1), NOW) is None
        assert match_score(prospect, campaign(2, min_tier=2), NOW) == 100

    def test_age_and_load_penalties(self, prospect):
        older = campaign(1, created_at=NOW - timedelta(days=10, hours=5), total_enrolled=20)
        assert match_score(prospect, older, NOW) == pytest.approx(100 - 10 - 2)


class TestRanking:
    def test_only_active_campaigns_in_prospect_language(self, prospect):
        campaigns = [
            campaign(1, language="en"),
            campaign(2, is_active=False),
            campaign(3),
        ]
        assert [m.campaign.id for m in rank_campaigns(prospect, campaigns, now=NOW)] == [3]

    def test_fallback_language_when_prospect_has_none(self, prospect):
        prospect = prospect.model_copy(update={"language": None})
        campaigns = [campaign(1, language="fr"), campaign(2, language="en")]
        assert select_campaign(prospect, campaigns, "en", NOW).campaign.id == 2

    def test_best_score_first(self, prospect):
        campaigns = [
            campaign(1, created_at=NOW - timedelta(days=10)),
            campaign(2, total_enrolled=50),
            campaign(3, country_filter=["FR"], created_at=NOW - timedelta(days=30)),
        ]
        ranked = rank_campaigns(prospect, campaigns, now=NOW)
        assert [m.campaign.id for m in ranked] == [3, 2, 1]
        assert [m.score for m in ranked] == pytest.approx([120, 95, 90])

    def test_ties_keep_evaluation_order(self, prospect):
        campaigns = [campaign(7), campaign(3), campaign(5)]
        assert select_campaign(prospect, campaigns, now=NOW).campaign.id == 7
        assert select_campaign(prospect, list(reversed(campaigns)), now=NOW).campaign.id == 5

    def test_never_selects_excluding_filters(self, prospect):
        campaigns = [
            campaign(1, category_filter=["media"]),
            campaign(2, country_filter=["DE"]),
        ]
        assert select_campaign(prospect, campaigns, now=NOW) is None
