"""
Page speed estimation.

Blends PageSpeed Insights mobile/desktop scores when a key is configured,
otherwise buckets the latency of a HEAD probe.
"""
import asyncio
import logging

from seolens.core.exceptions import FetchError, MeasurementUnavailable
from seolens.integrations.pagespeed import PageSpeedClient
from seolens.services.fetcher import PageFetcher, normalize_url
from seolens.services.scoring import round_half_up

logger = logging.getLogger(__name__)

MOBILE_WEIGHT = 0.6
DESKTOP_WEIGHT = 0.4

# (upper latency bound in ms, score)
LATENCY_SCORE_TABLE = [
    (800, 95),
    (1500, 85),
    (2500, 75),
    (4000, 65),
    (6000, 55),
]
SLOWEST_SCORE = 45
NEUTRAL_SCORE = 50


def score_latency(latency_ms: float) -> int:
    """Map a probe round-trip time onto the fallback score table."""
    for bound, score in LATENCY_SCORE_TABLE:
        if latency_ms < bound:
            return score
    return SLOWEST_SCORE


def blend_scores(mobile: int, desktop: int) -> int:
    return round_half_up(MOBILE_WEIGHT * mobile + DESKTOP_WEIGHT * desktop)


class SpeedEstimator:
    """Produces a 0-100 performance score for a URL."""

    def __init__(
        self,
        pagespeed: PageSpeedClient | None = None,
        fetcher: PageFetcher | None = None,
    ):
        self.pagespeed = pagespeed
        self.fetcher = fetcher or PageFetcher()

    async def _measure_or_zero(self, url: str, strategy: str) -> int:
        try:
            return await self.pagespeed.measure(url, strategy)
        except MeasurementUnavailable as e:
            logger.warning(f"[PSI] {strategy} measurement unavailable for {url}: {e}")
            return 0

    async def estimate(self, url: str) -> int:
        url = normalize_url(url)

        if self.pagespeed is not None and self.pagespeed.is_configured:
            mobile, desktop = await asyncio.gather(
                self._measure_or_zero(url, "mobile"),
                self._measure_or_zero(url, "desktop"),
            )
            if mobile or desktop:
                return blend_scores(mobile, desktop)
            logger.info(f"[PSI] No measurement for {url}, falling back to latency probe")

        return await self.estimate_from_latency(url)

    async def estimate_from_latency(self, url: str) -> int:
        try:
            latency_ms = await self.fetcher.probe(url)
        except FetchError as e:
            logger.warning(f"Speed probe failed for {url}: {e.message}")
            return NEUTRAL_SCORE
        return score_latency(latency_ms)
