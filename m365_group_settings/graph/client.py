"""
Async Graph API client with pagination and write-scope enforcement.
Requests are issued one at a time and are never retried.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    REQUEST_TIMEOUT_SECONDS,
    CONNECT_TIMEOUT_SECONDS,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
)
from ..safety.guardian import WriteGuardian

logger = logging.getLogger("m365_group_settings.graph")


class GraphAPIError(Exception):
    """Raised when Graph API returns a non-success status."""
    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Guardian-validated requests (writes limited to /groupSettings)
      - What-if mode: validated writes are recorded, not sent
      - Automatic pagination with @odata.nextLink
      - GET, POST, PATCH and DELETE helpers returning parsed JSON
    """

    def __init__(
        self,
        access_token: str,
        guardian: WriteGuardian,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def what_if(self) -> bool:
        return self.guardian.what_if

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=CONNECT_TIMEOUT_SECONDS),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "ConsistencyLevel": "eventual",  # Required for $search
            },
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint}"

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Execute a single GET request."""
        url = self._build_url(endpoint)
        self.guardian.validate_request("GET", url)
        return await self._execute("GET", url, params=params)

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        skip_top: bool = False,
    ) -> list[dict]:
        """
        Fetch all pages of a paginated endpoint into a list.
        Set skip_top=True for endpoints that don't support $top.
        """
        items = []
        async for item in self.get_all_pages_stream(endpoint, params, skip_top=skip_top):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        skip_top: bool = False,
    ) -> AsyncGenerator[dict, None]:
        """Stream all pages of a paginated endpoint, one item at a time."""
        params = dict(params or {})
        if not skip_top and "$top" not in params:
            params["$top"] = str(DEFAULT_PAGE_SIZE)

        url = self._build_url(endpoint)
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            self.guardian.validate_request("GET", url)
            data = await self._execute("GET", url, params=params)

            for item in data.get("value", []):
                yield item

            # nextLink carries all query parameters
            url = data.get("@odata.nextLink")
            params = None
            pages += 1

        if url:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {endpoint}"
            )

    async def post(self, endpoint: str, body: dict) -> dict:
        """POST a JSON body. Returns {} when skipped in what-if mode."""
        return await self._write("POST", endpoint, body)

    async def patch(self, endpoint: str, body: dict) -> dict:
        """PATCH a JSON body. Returns {} when skipped in what-if mode."""
        return await self._write("PATCH", endpoint, body)

    async def delete(self, endpoint: str) -> dict:
        """DELETE a resource. Returns {} when skipped in what-if mode."""
        return await self._write("DELETE", endpoint, None)

    async def _write(self, method: str, endpoint: str, body: Optional[dict]) -> dict:
        url = self._build_url(endpoint)
        if not self.guardian.validate_request(method, url, body):
            return {}
        return await self._execute(method, url, json_body=body)

    async def _execute(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict:
        """Send one request and parse the response. Raises GraphAPIError on failure."""
        response = await self._execute_raw(method, url, params=params, json_body=json_body)
        logger.debug(f"{method} {url} -> {response.status_code}")

        if response.status_code == 204:
            return {}

        if 200 <= response.status_code < 300:
            if not response.content or not response.content.strip():
                return {}
            try:
                return response.json()
            except ValueError:
                logger.debug(f"{response.status_code} response with non-JSON body from {url}")
                return {}

        raise GraphAPIError(response.status_code, _error_message(response), url)

    async def _execute_raw(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> httpx.Response:
        """Execute raw HTTP request."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")

        if method == "GET":
            return await self._client.get(url, params=params)
        elif method == "POST":
            return await self._client.post(url, json=json_body)
        elif method == "PATCH":
            return await self._client.patch(url, json=json_body)
        elif method == "DELETE":
            return await self._client.delete(url)
        else:
            raise ValueError(f"Unsupported method: {method}")


def _error_message(response: httpx.Response) -> str:
    """Extract the Graph error message from a failed response."""
    try:
        error_body = response.json() if response.content else {}
    except ValueError:
        return response.text[:200]
    if not isinstance(error_body, dict):
        return response.text[:200]
    return error_body.get("error", {}).get("message", response.text[:200])
