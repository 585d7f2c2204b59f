"""USDA FoodData Central API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from nutrition_resolver.errors import UnparsableResponse, UpstreamUnavailable


class FdcClient(Protocol):
    """Interface for FoodData Central API interactions."""

    async def search_foods(self, query: str, page_size: int = 10) -> dict[str, object]:
        """Search foods by query and return raw API data."""

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        """Fetch a food by FDC id and return raw API data."""


@dataclass
class HttpxFdcClient(FdcClient):
    """HTTPX-backed FDC client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 15

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxFdcClient":
        """Create an FDC client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def search_foods(self, query: str, page_size: int = 10) -> dict[str, object]:
        """Search foods by query."""
        return await self._request(
            "POST",
            f"{self.base_url}/foods/search",
            json={"query": query, "pageSize": page_size},
        )

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        """Fetch a food with nutrients and portions by FDC id."""
        return await self._request("GET", f"{self.base_url}/food/{fdc_id}")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self, method: str, url: str, json: dict[str, object] | None = None
    ) -> dict[str, object]:
        try:
            response = await self.http_client.request(
                method,
                url,
                params={"api_key": self.api_key},
                json=json,
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"FDC request failed: {exc}") from exc
        if not response.is_success:
            raise UpstreamUnavailable(
                f"FDC returned {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UnparsableResponse("FDC returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise UnparsableResponse("FDC returned an unexpected JSON shape")
        return payload
