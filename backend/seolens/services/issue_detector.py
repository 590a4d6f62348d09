"""
Issue detection rules.

Each ``detect_*`` function maps one family of signals onto a list of
Issues and has no side effects; ``detect_issues`` composes them.
"""
from dataclasses import asdict, dataclass
from typing import Any, Callable

from seolens.models.issue import IssueSeverity
from seolens.services.content_analyzer import ContentSignals
from seolens.services.technical_analyzer import SiteProbeResult, TechnicalSignals

# Content thresholds
LOW_QUALITY_THRESHOLD = 60
POOR_READABILITY_THRESHOLD = 70
LOW_EAT_THRESHOLD = 60
HIGH_KEYWORD_DENSITY = 5
POOR_STRUCTURE_THRESHOLD = 70
POOR_INTENT_THRESHOLD = 70
LOW_UNIQUENESS_THRESHOLD = 60
THIN_CONTENT_WORDS = 300
DUPLICATE_RISK_THRESHOLD = 30

# Technical limits
TITLE_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 60
DESCRIPTION_MIN_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 160
MIN_INTERNAL_LINKS = 3

# Issue categories an automated remediation process can correct
AI_FIXABLE_ISSUE_TYPES = [
    # Meta tags
    "missing page title",
    "title tag too long",
    "title tag too short",
    "missing meta description",
    "meta description too long",
    "meta description too short",
    "duplicate meta descriptions",
    # Headings
    "missing h1 tag",
    "multiple h1 tags",
    "improper heading hierarchy",
    # Images
    "images missing alt text",
    "unoptimized images",
    "missing image dimensions",
    "images missing lazy loading",
    # Content
    "low content quality",
    "poor readability",
    "poor content structure",
    "thin content",
    "duplicate content",
    "keyword over-optimization",
    "poor keyword distribution",
    "missing important keywords",
    # Technical markup
    "missing viewport meta tag",
    "missing schema markup",
    "missing open graph tags",
    "missing twitter cards",
    "missing canonical url",
    "missing breadcrumbs",
    "missing faq schema",
    # Links
    "broken internal links",
    "poor internal linking",
    "external links missing attributes",
    "orphan pages",
    # Site-wide
    "missing xml sitemap",
    "robots txt issues",
    "unoptimized permalinks",
    "redirect chains",
]


def is_ai_fixable(title: str) -> bool:
    lowered = title.lower()
    return any(fix_type in lowered for fix_type in AI_FIXABLE_ISSUE_TYPES)


@dataclass(frozen=True)
class Issue:
    """One problem found on the analyzed page."""
    severity: IssueSeverity
    title: str
    description: str
    auto_fix_available: bool
    affected_pages: int = 1

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


def make_issue(
    severity: IssueSeverity,
    title: str,
    description: str,
    fixable: bool = True,
) -> Issue:
    return Issue(
        severity=severity,
        title=title,
        description=description,
        auto_fix_available=fixable or is_ai_fixable(title),
    )


def detect_content_issues(content: ContentSignals) -> list[Issue]:
    issues = []
    keywords = content.keyword_optimization

    if content.quality_score < LOW_QUALITY_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.CRITICAL,
            "Low Content Quality",
            f"Content quality score is {content.quality_score}/100. "
            "Improve depth, accuracy and usefulness of the content.",
        ))

    if content.readability_score < POOR_READABILITY_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Poor Readability",
            f"Readability score is {content.readability_score}/100. "
            "Use shorter sentences and simpler wording.",
        ))

    if content.eat_score.overall < LOW_EAT_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Low E-A-T Score",
            f"Expertise, Authoritativeness and Trustworthiness score is "
            f"{content.eat_score.overall}/100. Add author credentials, sources and trust signals.",
            fixable=False,
        ))

    if keywords.keyword_distribution == "poor":
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Poor Keyword Distribution",
            "Target keywords are not spread naturally through the content.",
        ))

    if keywords.primary_keyword_density > HIGH_KEYWORD_DENSITY:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Keyword Over-Optimization",
            f"Primary keyword density is {keywords.primary_keyword_density:.1f}%, "
            "which may look like keyword stuffing.",
        ))

    if keywords.missing_keywords:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Missing Important Keywords",
            f"Consider covering: {', '.join(keywords.missing_keywords[:5])}.",
        ))

    if content.content_structure_score < POOR_STRUCTURE_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Poor Content Structure",
            f"Content structure score is {content.content_structure_score}/100. "
            "Organize the content with clear headings and sections.",
        ))

    if content.user_intent_alignment < POOR_INTENT_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Poor User Intent Alignment",
            f"User intent alignment is {content.user_intent_alignment}/100. "
            "Make sure the page answers what searchers are looking for.",
            fixable=False,
        ))

    if content.uniqueness_score < LOW_UNIQUENESS_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Low Content Uniqueness",
            f"Uniqueness score is {content.uniqueness_score}/100. Add original insights or data.",
            fixable=False,
        ))

    if content.word_count < THIN_CONTENT_WORDS:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Thin Content",
            f"Page has only {content.word_count} words. "
            f"Aim for at least {THIN_CONTENT_WORDS} words of substantive content.",
        ))

    if content.duplicate_content_risk > DUPLICATE_RISK_THRESHOLD:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Duplicate Content Risk",
            f"Duplicate content risk is {content.duplicate_content_risk}%.",
        ))

    return issues


def detect_meta_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []
    meta = technical.meta

    if not meta.title:
        issues.append(make_issue(
            IssueSeverity.CRITICAL,
            "Missing Page Title",
            "Page is missing a title tag, which is essential for rankings and click-through.",
        ))
    elif meta.title_length > TITLE_MAX_LENGTH:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Title Tag Too Long",
            f"Title is {meta.title_length} characters. "
            f"Keep it under {TITLE_MAX_LENGTH} characters to avoid truncation.",
        ))
    elif meta.title_length < TITLE_MIN_LENGTH:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Title Tag Too Short",
            f"Title is {meta.title_length} characters. Use a more descriptive title.",
        ))

    if not meta.description:
        issues.append(make_issue(
            IssueSeverity.CRITICAL,
            "Missing Meta Description",
            "Page is missing a meta description, which search engines show in results.",
        ))
    elif meta.description_length > DESCRIPTION_MAX_LENGTH:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Meta Description Too Long",
            f"Meta description is {meta.description_length} characters. "
            f"Keep it under {DESCRIPTION_MAX_LENGTH} characters.",
        ))
    elif meta.description_length < DESCRIPTION_MIN_LENGTH:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Meta Description Too Short",
            f"Meta description is {meta.description_length} characters. "
            f"Aim for {DESCRIPTION_MIN_LENGTH}-{DESCRIPTION_MAX_LENGTH} characters.",
        ))

    if not meta.canonical:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Missing Canonical URL",
            "Add a canonical link to prevent duplicate content issues.",
        ))

    return issues


def detect_heading_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []
    headings = technical.headings

    if headings.h1 == 0:
        issues.append(make_issue(
            IssueSeverity.CRITICAL,
            "Missing H1 Tag",
            "Page has no H1 heading describing its main topic.",
        ))
    elif headings.h1 > 1:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Multiple H1 Tags",
            f"Page has {headings.h1} H1 headings. Use a single H1 per page.",
        ))

    if not headings.hierarchy_ok:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Improper Heading Hierarchy",
            "Heading levels are skipped (for example H2 followed by H4).",
        ))

    return issues


def detect_image_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []
    images = technical.images

    if images.without_alt > 0:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Images Missing Alt Text",
            f"{images.without_alt} out of {images.total} images are missing alt text.",
        ))

    if images.without_dimensions > 0:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Images Missing Dimensions",
            f"{images.without_dimensions} images have no width/height attributes, "
            "which causes layout shift.",
        ))

    if images.without_lazy_loading > 0:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Images Missing Lazy Loading",
            f"{images.without_lazy_loading} below-the-fold images are not lazy loaded.",
        ))

    return issues


def detect_mobile_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []

    if not technical.mobile.viewport_meta:
        issues.append(make_issue(
            IssueSeverity.CRITICAL,
            "Missing Viewport Meta Tag",
            "Add <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">.",
        ))

    if not technical.mobile.responsive:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Not Mobile Responsive",
            "Page shows no responsive design signals such as media queries or flexible layouts.",
            fixable=False,
        ))

    return issues


def detect_schema_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []
    schema = technical.schema

    if not schema.has_structured_data:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Missing Schema Markup",
            "Add structured data (JSON-LD) so search engines can show rich results.",
        ))

    if schema.has_faq_content and not schema.has_faq_schema:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Missing FAQ Schema",
            "Page contains question headings but no FAQPage structured data.",
        ))

    if not schema.has_breadcrumbs:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Missing Breadcrumbs",
            "Add breadcrumb navigation and BreadcrumbList markup.",
        ))

    return issues


def detect_social_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []

    if not technical.meta.has_og_tags:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Missing Open Graph Tags",
            "Add og:title, og:description and og:image for social sharing previews.",
        ))

    if not technical.meta.has_twitter_cards:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Missing Twitter Cards",
            "Add twitter:card meta tags for Twitter/X sharing previews.",
        ))

    return issues


def detect_link_issues(technical: TechnicalSignals) -> list[Issue]:
    issues = []
    links = technical.links

    if links.internal < MIN_INTERNAL_LINKS:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Poor Internal Linking",
            f"Page has only {links.internal} internal links. "
            f"Link to at least {MIN_INTERNAL_LINKS} related pages.",
        ))

    if links.broken > 0:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Broken Internal Links",
            f"{links.broken} internal links appear to point to error pages.",
        ))

    if links.external_without_attributes > 0:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "External Links Missing Attributes",
            f"{links.external_without_attributes} external links lack rel=\"noopener noreferrer\" "
            "or a target attribute.",
        ))

    if links.inbound == 0:
        issues.append(make_issue(
            IssueSeverity.WARNING,
            "Orphan Page",
            "No internal links point to this page.",
        ))

    return issues


def detect_site_issues(probes: SiteProbeResult) -> list[Issue]:
    issues = []

    if not probes.has_sitemap:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Missing XML Sitemap",
            "No sitemap.xml found at the site root.",
        ))

    if not probes.has_robots_txt:
        issues.append(make_issue(
            IssueSeverity.INFO,
            "Robots.txt Issues",
            "robots.txt is missing or empty.",
        ))

    return issues


TECHNICAL_RULES: list[Callable[[TechnicalSignals], list[Issue]]] = [
    detect_meta_issues,
    detect_heading_issues,
    detect_image_issues,
    detect_mobile_issues,
    detect_schema_issues,
    detect_social_issues,
    detect_link_issues,
]


def detect_technical_issues(technical: TechnicalSignals) -> list[Issue]:
    return [issue for rule in TECHNICAL_RULES for issue in rule(technical)]


def detect_issues(
    technical: TechnicalSignals,
    content: ContentSignals,
    probes: SiteProbeResult | None = None,
) -> list[Issue]:
    """All issues for one analyzed page: content, technical, then site-wide."""
    issues = detect_content_issues(content) + detect_technical_issues(technical)
    if probes is not None:
        issues += detect_site_issues(probes)
    return issues
