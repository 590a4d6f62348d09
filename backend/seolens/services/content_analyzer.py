"""
AI content analysis.

Extracts the visible text of a page, asks the configured content-analysis
provider to grade it, and normalizes whatever comes back into
ContentSignals. Any failure degrades to a fixed default so an analysis run
never aborts here.
"""
import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from bs4 import BeautifulSoup

from seolens.config import settings
from seolens.core.exceptions import AnalysisError
from seolens.integrations.llm import LLMClient
from seolens.services.technical_analyzer import analyze_meta_tags

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 70
DEFAULT_KEYWORD_DENSITY = 2.0
DEFAULT_DISTRIBUTION = "good"
KEYWORD_DISTRIBUTIONS = ("poor", "good", "excellent")

MAIN_CONTENT_MIN_CHARS = 200

STRIPPED_SELECTORS = "script, style, nav, footer, header, aside, .menu, .sidebar, .ads"
MAIN_CONTENT_SELECTORS = [
    "main",
    "article",
    ".content",
    ".post",
    ".entry-content",
    ".main-content",
    "#content",
]

RESPONSE_STRUCTURE = """{
  "qualityScore": 0-100,
  "readabilityScore": 0-100,
  "keywordOptimization": {
    "primaryKeywordDensity": percentage,
    "keywordDistribution": "poor" | "good" | "excellent",
    "missingKeywords": [string],
    "keywordCannibalization": boolean,
    "lsiKeywords": [string]
  },
  "eatScore": {"expertise": 0-100, "authoritativeness": 0-100, "trustworthiness": 0-100, "overall": 0-100},
  "contentGaps": [string],
  "semanticKeywords": [string],
  "contentStructureScore": 0-100,
  "uniquenessScore": 0-100,
  "userIntentAlignment": 0-100,
  "duplicateContentRisk": 0-100
}"""


@dataclass(frozen=True)
class KeywordOptimization:
    primary_keyword_density: float = DEFAULT_KEYWORD_DENSITY
    keyword_distribution: str = DEFAULT_DISTRIBUTION
    missing_keywords: list[str] = field(default_factory=list)
    keyword_cannibalization: bool = False
    lsi_keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EATScore:
    expertise: int = DEFAULT_SCORE
    authoritativeness: int = DEFAULT_SCORE
    trustworthiness: int = DEFAULT_SCORE
    overall: int = DEFAULT_SCORE


@dataclass(frozen=True)
class ContentSignals:
    """AI-derived content quality facts for one page."""
    quality_score: int = DEFAULT_SCORE
    readability_score: int = DEFAULT_SCORE
    keyword_optimization: KeywordOptimization = field(default_factory=KeywordOptimization)
    eat_score: EATScore = field(default_factory=EATScore)
    content_gaps: list[str] = field(default_factory=list)
    semantic_keywords: list[str] = field(default_factory=list)
    content_structure_score: int = DEFAULT_SCORE
    uniqueness_score: int = DEFAULT_SCORE
    user_intent_alignment: int = DEFAULT_SCORE
    word_count: int = 0
    duplicate_content_risk: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ContentAnalysisOutcome:
    signals: ContentSignals
    tokens_used: int = 0
    provider: str | None = None
    model: str | None = None
    used_fallback: bool = True


def default_content_signals(word_count: int = 0) -> ContentSignals:
    return ContentSignals(word_count=word_count)


def extract_text_content(html: str) -> tuple[str, int]:
    """
    Extract the readable text of a page.

    Page chrome (scripts, navigation, sidebars, ads) is dropped. The first
    main-content container holding more than 200 characters wins, otherwise
    the whole body is used.

    Returns:
        (text, word_count)
    """
    return _extract_text(BeautifulSoup(html, "lxml"))


def _extract_text(soup: BeautifulSoup) -> tuple[str, int]:
    for element in soup.select(STRIPPED_SELECTORS):
        element.decompose()

    text = ""
    for selector in MAIN_CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container is None:
            continue
        candidate = container.get_text(" ", strip=True)
        if len(candidate) > MAIN_CONTENT_MIN_CHARS:
            text = candidate
            break

    if not text:
        root = soup.body or soup
        text = root.get_text(" ", strip=True)

    text = re.sub(r"\s+", " ", text).strip()
    return text, len(text.split())


def build_analysis_prompt(
    content: str,
    title: str | None,
    description: str | None,
    target_keywords: list[str],
    truncate_length: int | None = None,
) -> str:
    limit = truncate_length or settings.CONTENT_TRUNCATE_LENGTH
    excerpt = content[:limit]
    if len(content) > limit:
        excerpt += "...(truncated)"

    return f"""Analyze this webpage content for SEO quality and provide detailed insights:

TITLE: {title or "Not provided"}
META DESCRIPTION: {description or "Not provided"}
TARGET KEYWORDS: {", ".join(target_keywords) if target_keywords else "Not specified"}

CONTENT:
{excerpt}

Provide a comprehensive analysis covering:
1. Content quality score (0-100)
2. Readability score (0-100)
3. Keyword optimization: primary keyword density, distribution, missing keywords, LSI keywords
4. E-A-T (Expertise, Authoritativeness, Trustworthiness) scores
5. Content gaps that should be addressed
6. Semantic keywords that should be included
7. Content structure score (0-100)
8. Uniqueness score (0-100)
9. User intent alignment score (0-100)

Return ONLY valid JSON with exactly this structure:
{RESPONSE_STRUCTURE}"""


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _clamp_score(value: Any, default: int = DEFAULT_SCORE) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return int(round(min(100.0, max(0.0, number))))


def _clamp_density(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_KEYWORD_DENSITY
    if number != number:
        return DEFAULT_KEYWORD_DENSITY
    return min(100.0, max(0.0, number))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def validate_content_analysis(data: dict, word_count: int) -> ContentSignals:
    """Coerce a loosely-typed provider payload into ContentSignals."""
    if not isinstance(data, dict):
        return default_content_signals(word_count)

    keywords = _pick(data, "keywordOptimization", "keyword_optimization", default={})
    if not isinstance(keywords, dict):
        keywords = {}
    eat = _pick(data, "eatScore", "eat_score", default={})
    if not isinstance(eat, dict):
        eat = {}

    distribution = str(
        _pick(keywords, "keywordDistribution", "keyword_distribution", default=DEFAULT_DISTRIBUTION)
    ).lower()
    if distribution not in KEYWORD_DISTRIBUTIONS:
        distribution = DEFAULT_DISTRIBUTION

    return ContentSignals(
        quality_score=_clamp_score(_pick(data, "qualityScore", "quality_score")),
        readability_score=_clamp_score(_pick(data, "readabilityScore", "readability_score")),
        keyword_optimization=KeywordOptimization(
            primary_keyword_density=_clamp_density(
                _pick(keywords, "primaryKeywordDensity", "primary_keyword_density")
            ),
            keyword_distribution=distribution,
            missing_keywords=_string_list(_pick(keywords, "missingKeywords", "missing_keywords")),
            keyword_cannibalization=_as_bool(
                _pick(keywords, "keywordCannibalization", "keyword_cannibalization", default=False)
            ),
            lsi_keywords=_string_list(_pick(keywords, "lsiKeywords", "lsi_keywords")),
        ),
        eat_score=EATScore(
            expertise=_clamp_score(eat.get("expertise")),
            authoritativeness=_clamp_score(eat.get("authoritativeness")),
            trustworthiness=_clamp_score(eat.get("trustworthiness")),
            overall=_clamp_score(eat.get("overall")),
        ),
        content_gaps=_string_list(_pick(data, "contentGaps", "content_gaps")),
        semantic_keywords=_string_list(_pick(data, "semanticKeywords", "semantic_keywords")),
        content_structure_score=_clamp_score(
            _pick(data, "contentStructureScore", "content_structure_score")
        ),
        uniqueness_score=_clamp_score(_pick(data, "uniquenessScore", "uniqueness_score")),
        user_intent_alignment=_clamp_score(
            _pick(data, "userIntentAlignment", "user_intent_alignment")
        ),
        word_count=word_count,
        duplicate_content_risk=_clamp_score(
            _pick(data, "duplicateContentRisk", "duplicate_content_risk"), default=0
        ),
    )


def extract_scores_from_text(text: str, word_count: int) -> ContentSignals:
    """Last-resort recovery of scalar scores from free-form provider text."""
    return _scores_from_text(text, word_count)[0]


def _scores_from_text(text: str, word_count: int) -> tuple[ContentSignals, bool]:
    def find(label: str) -> int | None:
        match = re.search(rf"{label}[:\s]+(\d+)", text, re.IGNORECASE)
        return _clamp_score(match.group(1)) if match else None

    signals = default_content_signals(word_count)

    quality = find("quality")
    if quality is not None:
        signals = replace(signals, quality_score=quality)

    readability = find("readability")
    if readability is not None:
        signals = replace(signals, readability_score=readability)

    expertise = find("expertise")
    trust = find("trust")
    if expertise is not None or trust is not None:
        signals = replace(
            signals,
            eat_score=replace(
                signals.eat_score,
                expertise=expertise if expertise is not None else signals.eat_score.expertise,
                trustworthiness=trust if trust is not None else signals.eat_score.trustworthiness,
            ),
        )

    found = any(score is not None for score in (quality, readability, expertise, trust))
    return signals, found


def parse_ai_response(text: str, word_count: int) -> ContentSignals:
    """Parse provider output as JSON, falling back to label patterns."""
    return _parse_ai_response(text, word_count)[0]


def _parse_ai_response(text: str, word_count: int) -> tuple[ContentSignals, bool]:
    """Signals plus whether anything was actually recovered from ``text``."""
    match = re.search(r"\{[\s\S]*\}", text or "")
    if match:
        try:
            data = json.loads(match.group(0))
            return validate_content_analysis(data, word_count), isinstance(data, dict)
        except json.JSONDecodeError as e:
            logger.warning(f"[LLM] Response is not valid JSON ({e}), extracting scores from text")
    else:
        logger.warning("[LLM] No JSON object in response, extracting scores from text")

    return _scores_from_text(text or "", word_count)


class ContentAnalyzer:
    """Grades page content through the configured provider."""

    def __init__(self, provider: LLMClient | None = None):
        self.provider = provider

    async def analyze(
        self,
        html: str,
        target_keywords: list[str],
    ) -> ContentAnalysisOutcome:
        soup = BeautifulSoup(html, "lxml")
        meta = analyze_meta_tags(soup)
        content, word_count = _extract_text(soup)

        if self.provider is None:
            logger.info("No content-analysis provider configured, using default content signals")
            return ContentAnalysisOutcome(signals=default_content_signals(word_count))

        prompt = build_analysis_prompt(content, meta.title, meta.description, target_keywords)

        try:
            result = await self.provider.analyze(prompt)
        except AnalysisError as e:
            logger.warning(f"Content analysis failed, using default content signals: {e}")
            return ContentAnalysisOutcome(signals=default_content_signals(word_count))

        signals, parsed = _parse_ai_response(result.text, word_count)
        if not parsed:
            logger.warning("[LLM] Nothing usable in provider response, using default content signals")

        return ContentAnalysisOutcome(
            signals=signals,
            tokens_used=result.tokens_used,
            provider=result.provider,
            model=result.model,
            used_fallback=not parsed,
        )
