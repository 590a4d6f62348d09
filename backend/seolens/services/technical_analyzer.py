"""
Technical SEO signal extraction.

Parses page markup into TechnicalSignals: meta tags, headings, images,
links, mobile readiness and structured data. Also runs the best-effort
sitemap.xml / robots.txt probes for the page's origin.
"""
import asyncio
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from seolens.config import settings

logger = logging.getLogger(__name__)

# Images rendered above the fold are expected to load eagerly
LAZY_LOADING_EXEMPT_IMAGES = 3

FAQ_HEADING_THRESHOLD = 3

LAYOUT_FRAMEWORK_CLASS = re.compile(
    r"^(container(-fluid)?|row|col(-.*)?|responsive|mobile|tablet|desktop)$"
)


@dataclass(frozen=True)
class MetaTagSignals:
    title: str | None = None
    description: str | None = None
    keywords: str | None = None
    canonical: str | None = None
    has_og_tags: bool = False
    has_twitter_cards: bool = False

    @property
    def title_length(self) -> int:
        return len(self.title) if self.title else 0

    @property
    def description_length(self) -> int:
        return len(self.description) if self.description else 0


@dataclass(frozen=True)
class HeadingSignals:
    h1: int = 0
    h2: int = 0
    h3: int = 0
    h4: int = 0
    h5: int = 0
    h6: int = 0
    hierarchy_ok: bool = True


@dataclass(frozen=True)
class ImageSignals:
    total: int = 0
    without_alt: int = 0
    without_title: int = 0
    without_dimensions: int = 0
    without_lazy_loading: int = 0


@dataclass(frozen=True)
class LinkSignals:
    internal: int = 0
    external: int = 0
    broken: int = 0
    external_without_attributes: int = 0
    inbound: int = 0


@dataclass(frozen=True)
class PerformanceSignals:
    page_size: int = 0


@dataclass(frozen=True)
class MobileSignals:
    viewport_meta: bool = False
    responsive: bool = False


@dataclass(frozen=True)
class SchemaSignals:
    has_structured_data: bool = False
    has_faq_schema: bool = False
    has_breadcrumbs: bool = False
    has_article_schema: bool = False
    has_product_schema: bool = False
    has_faq_content: bool = False


@dataclass(frozen=True)
class TechnicalSignals:
    """Structural facts about one page."""
    meta: MetaTagSignals = field(default_factory=MetaTagSignals)
    headings: HeadingSignals = field(default_factory=HeadingSignals)
    images: ImageSignals = field(default_factory=ImageSignals)
    links: LinkSignals = field(default_factory=LinkSignals)
    performance: PerformanceSignals = field(default_factory=PerformanceSignals)
    mobile: MobileSignals = field(default_factory=MobileSignals)
    schema: SchemaSignals = field(default_factory=SchemaSignals)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["meta"]["title_length"] = self.meta.title_length
        data["meta"]["description_length"] = self.meta.description_length
        return data


@dataclass(frozen=True)
class SiteProbeResult:
    """Presence of site-wide crawler files."""
    has_sitemap: bool = True
    has_robots_txt: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _meta_content(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find("meta", attrs={"name": re.compile(rf"^{name}$", re.I)})
    if tag and tag.get("content") is not None:
        return tag["content"].strip() or None
    return None


def analyze_meta_tags(soup: BeautifulSoup) -> MetaTagSignals:
    title = None
    if soup.title:
        title = soup.title.get_text().strip() or None

    canonical = None
    canonical_tag = soup.find("link", rel="canonical")
    if canonical_tag and canonical_tag.get("href"):
        canonical = canonical_tag["href"]

    return MetaTagSignals(
        title=title,
        description=_meta_content(soup, "description"),
        keywords=_meta_content(soup, "keywords"),
        canonical=canonical,
        has_og_tags=bool(soup.find("meta", property=re.compile(r"^og:"))),
        has_twitter_cards=bool(soup.find("meta", attrs={"name": re.compile(r"^twitter:")})),
    )


def check_heading_hierarchy(levels: list[int]) -> bool:
    """A heading may go at most one level deeper than the one before it."""
    for previous, current in zip(levels, levels[1:]):
        if current > previous + 1:
            return False
    return True


def analyze_headings(soup: BeautifulSoup) -> HeadingSignals:
    headings = soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
    levels = [int(h.name[1]) for h in headings]
    counts = {f"h{level}": levels.count(level) for level in range(1, 7)}
    return HeadingSignals(**counts, hierarchy_ok=check_heading_hierarchy(levels))


def analyze_images(soup: BeautifulSoup) -> ImageSignals:
    images = soup.find_all("img")
    without_alt = without_title = without_dimensions = without_lazy = 0

    for index, img in enumerate(images):
        if not (img.get("alt") or "").strip():
            without_alt += 1
        if not img.get("title"):
            without_title += 1
        if not img.get("width") or not img.get("height"):
            without_dimensions += 1
        if index >= LAZY_LOADING_EXEMPT_IMAGES and img.get("loading") != "lazy":
            without_lazy += 1

    return ImageSignals(
        total=len(images),
        without_alt=without_alt,
        without_title=without_title,
        without_dimensions=without_dimensions,
        without_lazy_loading=without_lazy,
    )


def _normalize_for_compare(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.netloc.lower()}{parsed.path.rstrip('/')}"


def analyze_links(soup: BeautifulSoup, url: str) -> LinkSignals:
    domain = urlparse(url).netloc
    page_key = _normalize_for_compare(url)
    last_segment = url.rstrip("/").split("/")[-1] if urlparse(url).path.strip("/") else ""

    internal = external = broken = unsafe = inbound = 0

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()

        if href.startswith("/") or (domain and domain in href):
            internal += 1
            if "404" in href or "error" in href:
                broken += 1
        elif href.startswith("http"):
            external += 1
            rel = anchor.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "noopener" not in rel or "noreferrer" not in rel or not anchor.get("target"):
                unsafe += 1

        if _normalize_for_compare(urljoin(url, href)) == page_key:
            inbound += 1
        elif last_segment and last_segment in href:
            inbound += 1

    return LinkSignals(
        internal=internal,
        external=external,
        broken=broken,
        external_without_attributes=unsafe,
        inbound=inbound,
    )


def _inline_css(soup: BeautifulSoup) -> str:
    styles = [tag.get_text() for tag in soup.find_all("style")]
    styles.extend(tag.get("style", "") for tag in soup.find_all(style=True))
    return "\n".join(styles)


def check_responsive_design(soup: BeautifulSoup, html: str) -> bool:
    """Responsive when at least two layout indicators are present."""
    css = _inline_css(soup)
    css_compact = re.sub(r"\s+", "", css)
    classes = {cls for tag in soup.find_all(class_=True) for cls in tag.get("class", [])}

    has_media_queries = (
        "@media" in html
        or "screen and (" in html
        or bool(soup.find("link", media=lambda m: m and "(" in m))
    )
    has_flex_or_grid = (
        "display:flex" in css_compact
        or "display:grid" in css_compact
        or bool(classes & {"d-flex", "flex", "grid", "d-grid"})
    )
    has_framework_classes = (
        "bootstrap" in html.lower()
        or any(LAYOUT_FRAMEWORK_CLASS.match(cls) for cls in classes)
    )

    indicators = [
        bool(soup.find("meta", attrs={"name": "viewport"})),
        has_media_queries,
        has_flex_or_grid,
        has_framework_classes,
    ]
    return sum(indicators) >= 2


def analyze_mobile(soup: BeautifulSoup, html: str) -> MobileSignals:
    viewport = soup.find("meta", attrs={"name": "viewport"})
    content = (viewport.get("content") or "") if viewport else ""
    return MobileSignals(
        viewport_meta="width=device-width" in content,
        responsive=check_responsive_design(soup, html),
    )


def analyze_schema(soup: BeautifulSoup) -> SchemaSignals:
    ld_scripts = soup.find_all("script", type="application/ld+json")
    payload = re.sub(r"\s+", "", " ".join(s.get_text() for s in ld_scripts))

    has_structured_data = bool(
        ld_scripts or soup.find(attrs={"itemscope": True}) or soup.find(attrs={"typeof": True})
    )
    breadcrumb_nav = soup.select(
        '.breadcrumb, .breadcrumbs, nav[aria-label*="breadcrumb" i]'
    )
    question_headings = [
        h for h in soup.find_all(["h2", "h3"]) if "?" in h.get_text()
    ]

    return SchemaSignals(
        has_structured_data=has_structured_data,
        has_faq_schema='"@type":"FAQPage"' in payload,
        has_breadcrumbs='"BreadcrumbList"' in payload or bool(breadcrumb_nav),
        has_article_schema='"Article"' in payload,
        has_product_schema='"Product"' in payload,
        has_faq_content=len(question_headings) >= FAQ_HEADING_THRESHOLD,
    )


def analyze_technical(html: str, url: str) -> TechnicalSignals:
    """Extract technical SEO signals from page markup."""
    soup = BeautifulSoup(html, "lxml")

    return TechnicalSignals(
        meta=analyze_meta_tags(soup),
        headings=analyze_headings(soup),
        images=analyze_images(soup),
        links=analyze_links(soup, url),
        performance=PerformanceSignals(page_size=len(html.encode("utf-8"))),
        mobile=analyze_mobile(soup, html),
        schema=analyze_schema(soup),
    )


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


async def check_sitemap(
    url: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """HEAD {origin}/sitemap.xml; anything but a 404 counts as present."""
    sitemap_url = f"{_origin(url)}/sitemap.xml"
    try:
        async with httpx.AsyncClient(
            timeout=settings.SITE_PROBE_TIMEOUT,
            follow_redirects=True,
            max_redirects=2,
            transport=transport,
        ) as client:
            response = await client.head(sitemap_url)
            return response.status_code != 404
    except Exception as e:
        logger.warning(f"Failed to check sitemap.xml: {e}")
        return False


async def check_robots_txt(
    url: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """GET {origin}/robots.txt; present when it returns at least 10 characters."""
    robots_url = f"{_origin(url)}/robots.txt"
    try:
        async with httpx.AsyncClient(
            timeout=settings.SITE_PROBE_TIMEOUT,
            follow_redirects=True,
            transport=transport,
        ) as client:
            response = await client.get(robots_url)
            return response.status_code == 200 and len(response.text.strip()) >= 10
    except Exception as e:
        logger.warning(f"Failed to fetch robots.txt: {e}")
        return False


async def probe_site_files(
    url: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SiteProbeResult:
    """Probe sitemap.xml and robots.txt concurrently."""
    has_sitemap, has_robots = await asyncio.gather(
        check_sitemap(url, transport),
        check_robots_txt(url, transport),
    )
    return SiteProbeResult(has_sitemap=has_sitemap, has_robots_txt=has_robots)
