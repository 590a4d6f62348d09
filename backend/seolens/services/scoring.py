"""
Composite SEO score.

final = 0.35 * content + 0.45 * technical + 0.20 * speed, clamped to 0-100,
where technical starts from 100 minus issue penalties and earns bonuses for
well-formed markup.
"""
import math

from seolens.models.issue import IssueSeverity
from seolens.services.content_analyzer import ContentSignals
from seolens.services.issue_detector import (
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    TITLE_MAX_LENGTH,
    Issue,
)
from seolens.services.technical_analyzer import TechnicalSignals

ISSUE_PENALTIES = {
    IssueSeverity.CRITICAL: 12,
    IssueSeverity.WARNING: 6,
    IssueSeverity.INFO: 2,
}

WEIGHTS = {
    "content": 0.35,
    "technical": 0.45,
    "speed": 0.20,
}

CONTENT_WEIGHTS = {
    "quality": 0.30,
    "eat": 0.25,
    "readability": 0.15,
    "intent": 0.15,
    "uniqueness": 0.15,
}

TITLE_OPTIMAL_MIN_LENGTH = 30


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (72.5 -> 73)."""
    return math.floor(value + 0.5)


def calculate_base_score(issues: list[Issue]) -> int:
    return 100 - sum(ISSUE_PENALTIES[issue.severity] for issue in issues)


def calculate_content_score(content: ContentSignals) -> float:
    return (
        CONTENT_WEIGHTS["quality"] * content.quality_score
        + CONTENT_WEIGHTS["eat"] * content.eat_score.overall
        + CONTENT_WEIGHTS["readability"] * content.readability_score
        + CONTENT_WEIGHTS["intent"] * content.user_intent_alignment
        + CONTENT_WEIGHTS["uniqueness"] * content.uniqueness_score
    )


def calculate_technical_bonus(technical: TechnicalSignals) -> int:
    bonus = 0
    meta = technical.meta

    if TITLE_OPTIMAL_MIN_LENGTH <= meta.title_length <= TITLE_MAX_LENGTH:
        bonus += 5
    if DESCRIPTION_MIN_LENGTH <= meta.description_length <= DESCRIPTION_MAX_LENGTH:
        bonus += 5
    if technical.headings.h1 == 1:
        bonus += 3
    if technical.mobile.responsive and technical.mobile.viewport_meta:
        bonus += 5
    if technical.schema.has_structured_data:
        bonus += 5
    if meta.has_og_tags:
        bonus += 3
    if technical.images.total > 0 and technical.images.without_alt == 0:
        bonus += 3

    return bonus


def calculate_score(
    issues: list[Issue],
    technical: TechnicalSignals,
    content: ContentSignals,
    speed_score: int,
) -> int:
    """Combine issues, content, technical bonuses and speed into one 0-100 score."""
    technical_score = calculate_base_score(issues) + calculate_technical_bonus(technical)
    content_score = calculate_content_score(content)

    final = round_half_up(
        WEIGHTS["content"] * content_score
        + WEIGHTS["technical"] * technical_score
        + WEIGHTS["speed"] * speed_score
    )
    return max(0, min(100, final))
