"""
DataForSEO SERP client.

Issues one live "advanced" organic lookup per call and extracts the rank,
URL and SERP features for the tracked domain. Errors are mapped onto the
provider exception hierarchy:

- HTTP 401/403, task status 401xx -> AuthError
- HTTP 429, task status 40202 -> RateLimitedError
- httpx timeout -> ProviderTimeoutError
- anything else unexpected -> InvalidResponseError
"""

import httpx
from pydantic import ValidationError
from typing import List, Dict, Any, Optional
import logging

from core.config import settings
from core.exceptions import (
    AuthError,
    ConfigError,
    InvalidResponseError,
    ProviderTimeoutError,
    RateLimitedError,
)
from models.base import Device, RankingSource
from schemas.tracking import PositionObservation
from tracking.providers.base import RankingProvider, language_for_location

logger = logging.getLogger(__name__)

SERP_ENDPOINT = "/serp/google/organic/live/advanced"
STATUS_OK = 20000
STATUS_RATE_LIMITED = 40202

# SERP item type -> feature label
SERP_FEATURES = {
    "featured_snippet": "Featured Snippet",
    "local_pack": "Local Pack",
    "people_also_ask": "People Also Ask",
    "images": "Image Pack",
    "video": "Video Results",
    "top_stories": "Top Stories",
    "knowledge_graph": "Knowledge Graph",
    "shopping": "Shopping",
}


class DataForSEOClient(RankingProvider):
    """
    Ranking provider backed by the DataForSEO SERP API.

    Attributes:
        base_url: API root, e.g. https://api.dataforseo.com/v3
        timeout: Request timeout in seconds
        depth: Number of SERP results requested per lookup
    """

    source = RankingSource.DATAFORSEO

    def __init__(
        self,
        login: Optional[str] = None,
        password: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        depth: Optional[int] = None
    ):
        self.login = login or settings.DATAFORSEO_LOGIN
        self.password = password or settings.DATAFORSEO_PASSWORD
        self.base_url = (base_url or settings.DATAFORSEO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.DATAFORSEO_TIMEOUT_SECONDS
        self.depth = depth or settings.TRACKING_LOOKUP_DEPTH

        if not self.login or not self.password:
            raise ConfigError(
                "DataForSEO credentials are not configured",
                context={"field_errors": ["DATAFORSEO_LOGIN", "DATAFORSEO_PASSWORD"]}
            )

    def build_task(
        self,
        keyword: str,
        location_code: int,
        device: Device
    ) -> Dict[str, Any]:
        task = {
            "keyword": keyword,
            "location_code": location_code,
            "language_code": language_for_location(location_code),
            "device": device.value,
            "depth": self.depth,
        }
        if device == Device.MOBILE:
            task["os"] = "android"
        return task

    async def fetch_position(
        self,
        keyword: str,
        location_code: int,
        device: Device,
        domain: Optional[str] = None
    ) -> PositionObservation:
        url = f"{self.base_url}{SERP_ENDPOINT}"
        context = {
            "keyword": keyword,
            "location_code": location_code,
            "device": device.value,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.login, self.password)
            ) as client:
                response = await client.post(
                    url,
                    json=[self.build_task(keyword, location_code, device)]
                )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"DataForSEO request timed out for '{keyword}'",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise InvalidResponseError(
                f"DataForSEO request failed for '{keyword}'",
                context=context,
                original_exception=e
            )

        self._check_http_status(response, context)
        result = self._extract_result(response, context)

        return self.parse_result(result, domain, keyword)

    def _check_http_status(self, response: httpx.Response, context: Dict[str, Any]):
        status = response.status_code

        if status in (401, 403):
            raise AuthError(
                "DataForSEO rejected the credentials",
                context={**context, "status_code": status}
            )

        if status == 429:
            raise RateLimitedError(
                "DataForSEO rate limit exceeded",
                context={**context, "status_code": status},
                retry_after=_parse_retry_after(response.headers.get("Retry-After"))
            )

        if status >= 400:
            raise InvalidResponseError(
                f"DataForSEO returned HTTP {status}",
                context={
                    **context,
                    "status_code": status,
                    "response_body": response.text[:500]  # Truncate
                }
            )

    def _extract_result(
        self,
        response: httpx.Response,
        context: Dict[str, Any]
    ) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                "Failed to parse DataForSEO JSON response",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

        if not isinstance(data, dict):
            raise InvalidResponseError(
                "Unexpected DataForSEO response shape",
                context=context
            )

        self._check_task_status(data, context)

        tasks = data.get("tasks") or []
        if not tasks or not isinstance(tasks[0], dict):
            raise InvalidResponseError("DataForSEO response contains no tasks", context=context)

        task = tasks[0]
        self._check_task_status(task, context)

        results = task.get("result") or []
        if not results or not isinstance(results[0], dict):
            raise InvalidResponseError("DataForSEO task returned no result", context=context)

        return results[0]

    def _check_task_status(self, payload: Dict[str, Any], context: Dict[str, Any]):
        status_code = payload.get("status_code")
        if status_code is None or status_code == STATUS_OK:
            return

        message = payload.get("status_message") or "unknown error"
        error_context = {**context, "status_code": status_code, "status_message": message}

        if status_code == STATUS_RATE_LIMITED:
            raise RateLimitedError(f"DataForSEO rate limit: {message}", context=error_context)
        if 40100 <= status_code < 40200:
            raise AuthError(f"DataForSEO authorization failed: {message}", context=error_context)
        raise InvalidResponseError(f"DataForSEO task failed: {message}", context=error_context)

    def parse_result(
        self,
        result: Dict[str, Any],
        domain: Optional[str],
        keyword: str = ""
    ) -> PositionObservation:
        """Find the tracked domain in a SERP result"""
        items: List[Dict[str, Any]] = result.get("items") or []

        features = []
        for item in items:
            label = SERP_FEATURES.get(item.get("type"))
            if label and label not in features:
                features.append(label)

        position = None
        url = None
        if domain is None:
            logger.warning(f"No domain configured for '{keyword}', position not resolved")
        else:
            for item in items:
                item_domain = item.get("domain") or ""
                if domain in item_domain:
                    position = item.get("rank_absolute")
                    url = item.get("url")
                    break

        if position is None and domain is not None:
            logger.debug(f"'{domain}' not found in top {len(items)} results for '{keyword}'")

        try:
            return PositionObservation(
                position=position,
                url=url,
                features=features,
                source=self.source,
                raw=result,
            )
        except ValidationError as e:
            raise InvalidResponseError(
                "DataForSEO returned an invalid ranking item",
                context={"keyword": keyword, "domain": domain, "rank_absolute": position},
                original_exception=e
            )


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
