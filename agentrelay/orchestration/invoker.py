"""
Outbound calls to registered agents.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..exceptions import DeserializationError, TransportError
from ..registry.models import Agent

logger = logging.getLogger(__name__)


@dataclass
class InvocationResult:
    """Outcome of one remote call, with its measured latency."""
    success: bool
    response_time_ms: int
    data: Any = None
    error: Optional[str] = None


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


class AgentInvoker:
    """
    Calls ``POST {agent.endpoint}/{capability}`` with the task input as JSON
    and the payment reference in ``X-Payment``.

    A 2xx response must carry a JSON body; any other status is a failure
    whose message is the response text.
    """

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    async def call(self, agent: Agent, capability: str, payload: Any, payment_reference: str) -> Any:
        """
        Invoke an agent and return its decoded JSON response.

        Raises:
            TransportError: agent unreachable or non-2xx
            DeserializationError: 2xx with a body that isn't JSON
        """
        url = f"{agent.endpoint.rstrip('/')}/{capability}"
        headers = {
            "Content-Type": "application/json",
            "X-Payment": payment_reference,
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Agent call failed: {e!r}")
        except (TypeError, ValueError) as e:
            # unencodable payload (NaN, non-JSON types)
            raise TransportError(f"Cannot send request to agent: {e}")

        if not response.is_success:
            message = response.text.strip() or f"HTTP {response.status_code}"
            raise TransportError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise DeserializationError(f"Invalid JSON response from agent: {e}", status_code=response.status_code)

    async def invoke(self, agent: Agent, capability: str, payload: Any, payment_reference: str) -> InvocationResult:
        """Like :meth:`call` but never raises; failures come back as results."""
        started = time.perf_counter()
        try:
            data = await self.call(agent, capability, payload, payment_reference)
        except TransportError as e:
            logger.warning("Agent %s failed %s: %s", agent.id, capability, e.message)
            return InvocationResult(success=False, response_time_ms=_elapsed_ms(started), error=e.message)

        return InvocationResult(success=True, response_time_ms=_elapsed_ms(started), data=data)
