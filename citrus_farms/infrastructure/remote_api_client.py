"""
Infrastructure layer: Farm repository backed by a remote farm records API.
"""
from typing import Any, Optional
import logging

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from citrus_farms.config import Settings, settings
from citrus_farms.domain.errors import (
    DuplicateFarmError,
    FarmNotFoundError,
    FarmValidationError,
)
from citrus_farms.domain.models import Farm, dump_farms
from citrus_farms.infrastructure.api_constants import APIConstants, FarmAPIEndpoints
from citrus_farms.infrastructure.repository import FarmPage, FarmRepository

logger = logging.getLogger(__name__)


class RemoteAPIError(Exception):
    """Custom exception for remote farm API errors."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RemoteFarmRepository(FarmRepository):
    """
    Client for a remote farm records API.

    Server errors and transport failures are retried only when
    ``remote_max_attempts`` is above 1; client errors never are.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the API client with configuration.

        Args:
            base_url: Versioned API root, e.g. http://host/api/v1
            config: Settings providing timeout and retry policy
            transport: Optional httpx transport (used by tests)
        """
        self.config = config or settings
        self.base_url = (base_url or self.config.remote_api_base_url).rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            headers={"accept": APIConstants.CONTENT_TYPE_JSON},
            timeout=self.config.remote_timeout,
            transport=transport,
        )

    def __enter__(self) -> "RemoteFarmRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(max(self.config.remote_max_attempts, 1)),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.remote_retry_min_wait,
                max=self.config.remote_retry_max_wait,
            ),
            retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
            reraise=True,
        )

    def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        response = self.client.request(method, endpoint, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Retry on server errors (5xx)
            if e.response.status_code >= 500:
                raise
            # Don't retry on client errors (4xx)
            raise _client_error(e.response)
        return response

    def _make_request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Make an HTTP request under the configured retry policy.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments for the request

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            FarmValidationError: On 400 responses
            RemoteAPIError: On other failures once retries are exhausted
        """
        try:
            response = self._retrying()(self._send, method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise RemoteAPIError(
                f"API request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise RemoteAPIError(f"API request error: {str(e)}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(f"API returned a non-JSON body for {endpoint}") from e

    def load_all(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> FarmPage:
        if page is not None:
            return self._fetch_page(page, page_size or APIConstants.DEFAULT_PAGE_SIZE)

        # Walk every page to assemble the full collection
        farms: list[Farm] = []
        current = 1
        while True:
            result = self._fetch_page(current, APIConstants.MAX_PAGE_SIZE)
            farms.extend(result.farms)
            if current >= result.total_pages:
                break
            current += 1
        return FarmPage(farms=farms, total_pages=1 if farms else 0)

    def _fetch_page(self, page: int, page_size: int) -> FarmPage:
        data = self._make_request(
            "GET",
            FarmAPIEndpoints.FARMS,
            params={"page": page, "limit": page_size},
        )
        if not isinstance(data, dict):
            raise RemoteAPIError("Unexpected farm list response: expected a JSON object")
        return FarmPage(
            farms=[Farm.model_validate(item) for item in data.get("farms", [])],
            total_pages=int(data.get("totalPages", 0)),
        )

    def get(self, farm_id: str) -> Farm:
        try:
            data = self._make_request("GET", FarmAPIEndpoints.farm_by_id(farm_id))
        except RemoteAPIError as e:
            if e.status_code == 404:
                raise FarmNotFoundError(farm_id) from e
            raise
        return _farm_from(data)

    def save(self, farm: Farm) -> Farm:
        data = self._make_request("POST", FarmAPIEndpoints.FARMS, json=farm.to_record())
        return _farm_from(data)

    def insert(self, farm: Farm) -> Farm:
        try:
            data = self._make_request(
                "POST",
                FarmAPIEndpoints.FARMS,
                params={"strict": "true"},
                json=farm.to_record(),
            )
        except RemoteAPIError as e:
            if e.status_code == 409:
                raise DuplicateFarmError(farm.id) from e
            raise
        return _farm_from(data)

    def delete(self, farm_id: str) -> None:
        self._make_request("DELETE", FarmAPIEndpoints.farm_by_id(farm_id))

    def replace_all(self, farms: list[Farm]) -> None:
        self._make_request("POST", FarmAPIEndpoints.RESTORE, json=dump_farms(farms))
        logger.info(f"Remote restore accepted {len(farms)} farms")


def _farm_from(data: Any) -> Farm:
    if not isinstance(data, dict):
        raise RemoteAPIError("Unexpected farm response: expected a JSON object")
    return Farm.model_validate(data)


def _client_error(response: httpx.Response) -> Exception:
    """Translate a 4xx response into the matching exception."""
    detail = _error_detail(response)
    if response.status_code == 400:
        return FarmValidationError(detail)
    return RemoteAPIError(
        f"API request failed: {response.status_code} - {detail}",
        status_code=response.status_code,
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("message") or body)
    return str(body)
