"""Processors package."""

from src.processors.campaign_matcher import rank_campaigns, select_campaign
from src.processors.merger import merge_fields
from src.processors.scorer import score_prospect, tier_for_score

__all__ = ["score_prospect", "tier_for_score", "merge_fields", "rank_campaigns", "select_campaign"]
