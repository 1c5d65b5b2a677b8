"""
Async client for the Stacks transaction explorer (Hiro API).
"""

import logging
from typing import Any, Optional

import httpx

from ..exceptions import ExplorerError

logger = logging.getLogger(__name__)


class HiroExplorer:
    """
    Looks up transactions by ID.

    Pass an ``httpx.AsyncClient`` to share a connection pool (or to inject a
    mock transport); otherwise a short-lived client is opened per lookup.
    """

    def __init__(
        self,
        base_url: str = "https://api.hiro.so",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def get_transaction(self, txid: str) -> Optional[dict[str, Any]]:
        """
        Fetch a transaction record.

        Args:
            txid: Normalized (0x-prefixed) transaction ID

        Returns:
            The explorer's transaction JSON, or None if it doesn't exist

        Raises:
            ExplorerError: on network failure, unexpected status or bad JSON
        """
        url = f"{self.base_url}/extended/v1/tx/{txid}"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise ExplorerError(f"Explorer request failed: {e}")

        if response.status_code == 404:
            return None
        if not response.is_success:
            raise ExplorerError(f"Explorer returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ExplorerError(f"Explorer returned invalid JSON: {e}")

        if not isinstance(data, dict):
            raise ExplorerError("Explorer returned an unexpected payload")
        return data
