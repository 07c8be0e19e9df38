"""
HTTP client for the re-rank backend.

The backend takes a query plus reference documents (source URLs) and returns
them ordered by relevance. Only the single best passage is used.

Request:  {"query": str, "documents": [str], "top_n": 1}
Response: {"results": [{"index": int, "relevance_score": float,
                        "document": {"text": str}}]}
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .errors import UpstreamError

logger = logging.getLogger(__name__)


class RerankClient:
    """
    HTTP client for the re-rank API.

    Args:
        url: Full endpoint URL
        api_key: Optional bearer token
        timeout_seconds: Total request timeout
    """

    def __init__(self, url: str, api_key: Optional[str] = None, timeout_seconds: float = 20.0):
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def rerank(self, query: str, documents: List[str]) -> str:
        """
        Return the most relevant passage for the query.

        Raises:
            UpstreamError: On non-200 status, transport failure or a
                response without a usable passage
        """
        payload = {"query": query, "documents": documents, "top_n": 1}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        logger.info(f"Re-ranking {len(documents)} documents")

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=payload, headers=self._headers()) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise UpstreamError(f"Re-rank failed with status {response.status}: {error_text[:200]}")
                    result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise UpstreamError(f"Re-rank request failed: {e}")

        return extract_passage(result)


def extract_passage(result: Any) -> str:
    """
    Pull the best passage out of a re-rank response body.

    Raises:
        UpstreamError: If the body does not carry a non-empty passage
    """
    if not isinstance(result, dict):
        raise UpstreamError("Malformed re-rank response")

    results = result.get("results")
    if not isinstance(results, list) or not results:
        raise UpstreamError("Re-rank response contained no results")

    best = results[0]
    document = best.get("document") if isinstance(best, dict) else None
    passage = document.get("text") if isinstance(document, dict) else None

    if not isinstance(passage, str) or not passage.strip():
        raise UpstreamError("Re-rank response contained no passage")

    return passage.strip()
