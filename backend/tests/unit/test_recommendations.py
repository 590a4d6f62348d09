"""
Unit tests for recommendation generation.
"""
from dataclasses import replace

from seolens.models.issue import IssueSeverity
from seolens.services.content_analyzer import default_content_signals
from seolens.services.issue_detector import make_issue
from seolens.services.recommendations import (
    Priority,
    critical_rollup,
    generate_recommendations,
)
from seolens.services.technical_analyzer import (
    MobileSignals,
    PerformanceSignals,
    TechnicalSignals,
)

from tests.fixtures.signals import good_content_signals, good_technical_signals


def titles(recommendations):
    return [rec.title for rec in recommendations]


class TestCriticalRollup:
    """Test the critical issue summary."""

    def test_no_critical_issues(self):
        issues = [make_issue(IssueSeverity.WARNING, "Poor Readability", "x")]

        assert critical_rollup(issues) == []

    def test_lists_critical_titles(self):
        issues = [
            make_issue(IssueSeverity.CRITICAL, "Missing Page Title", "x"),
            make_issue(IssueSeverity.WARNING, "Thin Content", "x"),
            make_issue(IssueSeverity.CRITICAL, "Missing Meta Description", "x"),
        ]

        [rollup] = critical_rollup(issues)

        assert rollup.priority == Priority.HIGH
        assert rollup.title == "Fix Critical SEO Issues"
        assert "2 critical issues" in rollup.description
        assert "Missing Page Title, Missing Meta Description" in rollup.description


class TestGenerateRecommendations:
    """Test ordering and capping."""

    def test_healthy_page_has_no_recommendations(self):
        assert generate_recommendations([], good_technical_signals(), good_content_signals()) == []

    def test_rollup_first_then_mobile(self):
        """The critical rollup leads, followed by mobile responsiveness."""
        issues = [make_issue(IssueSeverity.CRITICAL, "Missing Viewport Meta Tag", "x")]
        technical = replace(good_technical_signals(), mobile=MobileSignals())
        content = replace(good_content_signals(), content_gaps=["pricing"])

        recommendations = generate_recommendations(issues, technical, content)

        assert titles(recommendations) == [
            "Fix Critical SEO Issues",
            "Implement Mobile Responsiveness",
            "Fill Content Gaps",
        ]

    def test_mobile_first_without_critical_issues(self):
        technical = replace(good_technical_signals(), mobile=MobileSignals(viewport_meta=True))

        recommendations = generate_recommendations([], technical, default_content_signals(500))

        assert recommendations[0].title == "Implement Mobile Responsiveness"

    def test_default_content_recommendations(self):
        """Default scores of 70 fall below the E-A-T, readability and intent targets."""
        recommendations = generate_recommendations(
            [], good_technical_signals(), default_content_signals(500)
        )

        assert titles(recommendations) == [
            "Improve E-A-T Signals",
            "Improve Content Readability",
            "Align Content with User Intent",
        ]

    def test_content_before_other_technical(self):
        technical = replace(
            TechnicalSignals(),
            mobile=MobileSignals(viewport_meta=True, responsive=True),
            performance=PerformanceSignals(page_size=600_000),
        )
        content = replace(good_content_signals(), semantic_keywords=["heirloom"])

        recommendations = generate_recommendations([], technical, content)

        assert titles(recommendations) == [
            "Add Semantic Keywords",
            "Implement Schema Markup",
            "Add Open Graph Tags",
            "Optimize Internal Linking",
            "Optimize Page Size",
        ]
        assert "586KB" in recommendations[-1].description

    def test_capped(self):
        """Everything firing at once is capped at the limit."""
        issues = [make_issue(IssueSeverity.CRITICAL, "Missing Page Title", "x")]
        content = replace(
            default_content_signals(100),
            uniqueness_score=10,
            content_gaps=["a"],
            semantic_keywords=["b"],
        )
        technical = replace(TechnicalSignals(), performance=PerformanceSignals(page_size=600_000))

        everything = generate_recommendations(issues, technical, content, limit=50)
        capped = generate_recommendations(issues, technical, content, limit=5)
        default_cap = generate_recommendations(issues, technical, content)

        assert len(everything) == 12
        assert capped == everything[:5]
        assert len(default_cap) <= 12
        assert titles(capped)[:2] == ["Fix Critical SEO Issues", "Implement Mobile Responsiveness"]

    def test_to_dict(self):
        [rec] = critical_rollup([make_issue(IssueSeverity.CRITICAL, "Missing H1 Tag", "x")])

        assert rec.to_dict()["priority"] == "high"
