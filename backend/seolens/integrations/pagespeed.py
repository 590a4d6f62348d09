"""
Google PageSpeed Insights API client.

Provides the performance score used by the speed estimator.
"""
import logging

import httpx

from seolens.config import settings
from seolens.core.exceptions import MeasurementUnavailable

logger = logging.getLogger(__name__)


class PageSpeedClient:
    """HTTP client for Google PageSpeed Insights API."""

    BASE_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.PAGESPEED_API_KEY
        self.timeout = timeout or settings.PAGESPEED_TIMEOUT
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def measure(self, url: str, strategy: str = "mobile") -> int:
        """
        Measure a URL's Lighthouse performance score.

        Args:
            url: The URL to analyze
            strategy: 'mobile' or 'desktop'

        Returns:
            Performance score 0-100

        Raises:
            MeasurementUnavailable: if the key is missing or the request fails
        """
        if not self.is_configured:
            raise MeasurementUnavailable("PageSpeed API key not configured")

        params = {
            "url": url,
            "strategy": strategy,
            "category": "performance",
            "key": self.api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                logger.info(f"[PSI] Analyzing {url} ({strategy})")
                response = await client.get(self.BASE_URL, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"[PSI] Timeout analyzing {url}")
            raise MeasurementUnavailable("Request timeout") from e
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}"
            if e.response.status_code == 429:
                error_msg = "Rate limit exceeded"
            elif e.response.status_code == 400:
                error_msg = "Invalid URL or request"
            logger.error(f"[PSI] Error analyzing {url}: {error_msg}")
            raise MeasurementUnavailable(error_msg) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[PSI] Unexpected error analyzing {url}: {e}")
            raise MeasurementUnavailable(str(e)) from e

        return self._parse_score(data)

    def _parse_score(self, data: dict) -> int:
        score = (
            data.get("lighthouseResult", {})
            .get("categories", {})
            .get("performance", {})
            .get("score")
        )
        if score is None:
            raise MeasurementUnavailable("No performance score in response")
        return int(round(score * 100))
