"""Prospect scoring engine."""

import math

from src.models.signals import ScoreResult
from src.utils.logger import get_logger

logger = get_logger("scorer")

NEUTRAL_BASELINE = 25.0
CONTACT_FORM_BONUS = 10.0

# (minimum score, tier), best tier first
TIER_BANDS = ((70, 1), (40, 2), (20, 3))


def calculate_score(
    rank: float | None,
    domain_authority: float | None,
    has_contact_form: bool,
    spam_penalty: int,
) -> int:
    """Composite 0-100 score.

    Scoring:
    - rank known: min(rank, 10) * 4 (max 40)
    - domain authority known: da / 100 * 40 (max 40)
    - neither known: neutral 25 instead
    - contact form: +10
    - spam penalty (0 or 100) subtracted

    The result is clamped to [0, 100] and rounded half up.
    """
    if rank is None and domain_authority is None:
        raw = NEUTRAL_BASELINE
    else:
        raw = 0.0
        if rank is not None:
            raw += min(rank, 10) * 4
        if domain_authority is not None:
            raw += (domain_authority / 100) * 40

    if has_contact_form:
        raw += CONTACT_FORM_BONUS
    raw -= spam_penalty

    clamped = max(0.0, min(100.0, raw))
    return int(math.floor(clamped + 0.5))


def tier_for_score(score: int) -> int:
    """Map a stored score to its tier (1 best, 4 worst)."""
    for minimum, tier in TIER_BANDS:
        if score >= minimum:
            return tier
    return 4


def score_prospect(
    rank: float | None,
    domain_authority: float | None,
    has_contact_form: bool,
    spam_penalty: int,
) -> ScoreResult:
    """Score and tier, the tier always derived from the returned score."""
    score = calculate_score(rank, domain_authority, has_contact_form, spam_penalty)
    result = ScoreResult(score=score, tier=tier_for_score(score))
    logger.debug(
        "prospect_scored",
        rank=rank,
        domain_authority=domain_authority,
        has_contact_form=has_contact_form,
        spam_penalty=spam_penalty,
        score=result.score,
        tier=result.tier,
    )
    return result
