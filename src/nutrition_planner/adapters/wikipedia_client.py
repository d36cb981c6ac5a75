"""Wikipedia API client for condition summaries."""

from dataclasses import dataclass

import httpx

from nutrition_planner.domain.conditions import ConditionSummary
from nutrition_planner.services.conditions import ConditionSummaryClient


@dataclass
class HttpxWikipediaClient(ConditionSummaryClient):
    """HTTPX-backed MediaWiki API client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 10.0

    @classmethod
    def create(
        cls, base_url: str, timeout_seconds: float = 10.0
    ) -> "HttpxWikipediaClient":
        """Create a Wikipedia client with a managed httpx session."""
        return cls(
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def fetch_summary(self, condition: str) -> ConditionSummary | None:
        """Search for the condition and return the top page's intro."""
        search = await self._get(
            {
                "action": "query",
                "format": "json",
                "list": "search",
                "srsearch": condition,
                "utf8": 1,
            }
        )
        hits = (search.get("query") or {}).get("search") or []
        if not hits:
            return None
        page_id = str(hits[0]["pageid"])

        content = await self._get(
            {
                "action": "query",
                "format": "json",
                "prop": "extracts|categories",
                "exintro": 1,
                "explaintext": 1,
                "pageids": page_id,
            }
        )
        page = ((content.get("query") or {}).get("pages") or {}).get(page_id)
        if not page or not page.get("extract"):
            return None
        return ConditionSummary(
            title=page.get("title", condition),
            extract=page["extract"],
            categories=[
                str(category.get("title", ""))
                for category in page.get("categories") or []
            ],
        )

    async def _get(self, params: dict[str, object]) -> dict[str, object]:
        response = await self.http_client.get(
            self.base_url, params=params, timeout=self.timeout_seconds
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
