"""
Recommendation generation.

Builds a prioritized, capped list of suggestions from the detected issues
and the page signals. A rollup of critical issues always comes first.
"""
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from seolens.config import settings
from seolens.models.issue import IssueSeverity
from seolens.services.content_analyzer import ContentSignals
from seolens.services.issue_detector import Issue
from seolens.services.technical_analyzer import TechnicalSignals

EAT_TARGET = 80
UNIQUENESS_TARGET = 70
READABILITY_TARGET = 80
INTENT_TARGET = 80
MIN_RECOMMENDED_INTERNAL_LINKS = 5
PAGE_SIZE_WARNING_BYTES = 500_000


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Recommendation:
    priority: Priority
    title: str
    description: str
    impact: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value
        return data


def content_recommendations(content: ContentSignals) -> list[Recommendation]:
    recommendations = []

    if content.content_gaps:
        recommendations.append(Recommendation(
            Priority.HIGH,
            "Fill Content Gaps",
            f"Cover these missing topics: {', '.join(content.content_gaps[:3])}.",
            "Improves topical authority and relevance for related searches.",
        ))

    if content.semantic_keywords:
        recommendations.append(Recommendation(
            Priority.MEDIUM,
            "Add Semantic Keywords",
            f"Work in related terms such as: {', '.join(content.semantic_keywords[:5])}.",
            "Helps search engines understand the page's topic and context.",
        ))

    if content.eat_score.overall < EAT_TARGET:
        recommendations.append(Recommendation(
            Priority.HIGH,
            "Improve E-A-T Signals",
            "Add author bios, credentials, citations to reputable sources and trust signals.",
            "Strengthens rankings for quality-sensitive queries.",
        ))

    if content.uniqueness_score < UNIQUENESS_TARGET:
        recommendations.append(Recommendation(
            Priority.HIGH,
            "Increase Content Uniqueness",
            "Add original research, examples or perspectives not found on competing pages.",
            "Differentiates the page and reduces duplicate content risk.",
        ))

    if content.readability_score < READABILITY_TARGET:
        recommendations.append(Recommendation(
            Priority.MEDIUM,
            "Improve Content Readability",
            "Shorten sentences and paragraphs, and use lists and subheadings.",
            "Increases engagement and time on page.",
        ))

    if content.user_intent_alignment < INTENT_TARGET:
        recommendations.append(Recommendation(
            Priority.HIGH,
            "Align Content with User Intent",
            "Answer the primary search question early and match the expected content format.",
            "Improves click satisfaction and reduces bounce rate.",
        ))

    return recommendations


def technical_recommendations(technical: TechnicalSignals) -> list[Recommendation]:
    recommendations = []

    if not technical.mobile.responsive:
        recommendations.append(Recommendation(
            Priority.HIGH,
            "Implement Mobile Responsiveness",
            "Use a viewport meta tag, media queries and flexible layouts.",
            "Required for mobile-first indexing.",
        ))

    if not technical.schema.has_structured_data:
        recommendations.append(Recommendation(
            Priority.HIGH,
            "Implement Schema Markup",
            "Add JSON-LD structured data describing the page (Article, Product, FAQ, etc.).",
            "Enables rich results and better search understanding.",
        ))

    if not technical.meta.has_og_tags:
        recommendations.append(Recommendation(
            Priority.MEDIUM,
            "Add Open Graph Tags",
            "Add og:title, og:description, og:image and og:url.",
            "Improves how the page looks when shared on social media.",
        ))

    if technical.links.internal < MIN_RECOMMENDED_INTERNAL_LINKS:
        recommendations.append(Recommendation(
            Priority.MEDIUM,
            "Optimize Internal Linking",
            f"Add contextual links to at least {MIN_RECOMMENDED_INTERNAL_LINKS} related pages.",
            "Distributes link equity and helps crawlers discover content.",
        ))

    if technical.performance.page_size > PAGE_SIZE_WARNING_BYTES:
        size_kb = round(technical.performance.page_size / 1024)
        recommendations.append(Recommendation(
            Priority.MEDIUM,
            "Optimize Page Size",
            f"Page is {size_kb}KB. Minify HTML and remove unused inline code.",
            "Faster loading improves rankings and conversions.",
        ))

    return recommendations


def critical_rollup(issues: list[Issue]) -> list[Recommendation]:
    critical = [issue for issue in issues if issue.severity == IssueSeverity.CRITICAL]
    if not critical:
        return []
    titles = ", ".join(issue.title for issue in critical)
    return [Recommendation(
        Priority.HIGH,
        "Fix Critical SEO Issues",
        f"Address {len(critical)} critical issues: {titles}.",
        "Critical issues have the largest negative effect on rankings.",
    )]


def generate_recommendations(
    issues: list[Issue],
    technical: TechnicalSignals,
    content: ContentSignals,
    limit: int | None = None,
) -> list[Recommendation]:
    limit = limit or settings.MAX_RECOMMENDATIONS

    technical_items = technical_recommendations(technical)
    responsive = [r for r in technical_items if r.title == "Implement Mobile Responsiveness"]
    other_technical = [r for r in technical_items if r not in responsive]

    ordered = (
        critical_rollup(issues)
        + responsive
        + content_recommendations(content)
        + other_technical
    )
    return ordered[:limit]
