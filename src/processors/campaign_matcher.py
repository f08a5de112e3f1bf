"""Campaign ranking for auto-enrollment."""

import math
from dataclasses import dataclass
from datetime import datetime

from src.models.prospect import Campaign, Prospect, utcnow
from src.utils.logger import get_logger

logger = get_logger("campaign_matcher")

BASE_MATCH_SCORE = 100.0
COUNTRY_MATCH_BONUS = 50.0
ENROLLED_PENALTY = 0.1


@dataclass
class CampaignMatch:
    campaign: Campaign
    score: float


def match_score(prospect: Prospect, campaign: Campaign, now: datetime) -> float | None:
    """Score one campaign for a prospect, or None if it must be discarded.

    Scoring:
    - base 100
    - category allow-list excluding the prospect: discarded
    - country allow-list: +50 on match, discarded otherwise (including an
      unknown prospect country)
    - prospect tier above the campaign's threshold: discarded
    - minus one point per full day since the campaign was created
    - minus 0.1 per prospect already enrolled
    """
    score = BASE_MATCH_SCORE

    if campaign.category_filter and prospect.category not in campaign.category_filter:
        return None

    if campaign.country_filter:
        allowed = {c.upper() for c in campaign.country_filter}
        if not prospect.country or prospect.country.upper() not in allowed:
            return None
        score += COUNTRY_MATCH_BONUS

    if campaign.min_tier is not None and prospect.tier > campaign.min_tier:
        return None

    days_old = math.floor((now - campaign.created_at).total_seconds() / 86400)
    score -= max(days_old, 0)
    score -= campaign.total_enrolled * ENROLLED_PENALTY
    return score


def rank_campaigns(
    prospect: Prospect,
    campaigns: list[Campaign],
    fallback_language: str = "en",
    now: datetime | None = None,
) -> list[CampaignMatch]:
    """Eligible campaigns, best first.

    Only active campaigns in the prospect's language (or the fallback
    language when unset) are considered. Equal scores keep the order in
    which campaigns were given.
    """
    now = now or utcnow()
    language = prospect.language or fallback_language

    matches = []
    for campaign in campaigns:
        if not campaign.is_active or campaign.language != language:
            continue
        score = match_score(prospect, campaign, now)
        if score is not None:
            matches.append(CampaignMatch(campaign, score))

    # sorted() is stable, so ties keep evaluation order
    return sorted(matches, key=lambda m: m.score, reverse=True)


def select_campaign(
    prospect: Prospect,
    campaigns: list[Campaign],
    fallback_language: str = "en",
    now: datetime | None = None,
) -> CampaignMatch | None:
    """Best campaign for a prospect, or None when nothing is eligible."""
    ranked = rank_campaigns(prospect, campaigns, fallback_language, now)
    if not ranked:
        logger.debug(
            "no_matching_campaign",
            prospect_id=prospect.id,
            language=prospect.language,
            country=prospect.country,
            tier=prospect.tier,
        )
        return None

    best = ranked[0]
    logger.info(
        "campaign_selected",
        prospect_id=prospect.id,
        campaign_id=best.campaign.id,
        campaign_name=best.campaign.name,
        match_score=best.score,
    )
    return best
