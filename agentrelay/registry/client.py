"""
High-level client API for the Agent Registry.

Simple module-level functions over a lazily created global store, for
scripts that don't want to wire up a CapabilityStore themselves.
"""

import os
from typing import List, Optional

from .models import Agent, PaymentToken, RankedAgent, Reputation, TaskRecord
from .selector import AgentSelector, DiscoveryQuery
from .store import CapabilityStore

# Global store instance (lazy init)
_store: Optional[CapabilityStore] = None


def _get_store() -> CapabilityStore:
    """Get or create the global store instance."""
    global _store
    if _store is None:
        _store = CapabilityStore(os.environ.get("AGENTRELAY_DB_PATH") or None)
    return _store


def use_store(store: Optional[CapabilityStore]) -> None:
    """Point the module-level functions at a specific store (None resets)."""
    global _store
    _store = store


def register_agent(
    name: str,
    endpoint: str,
    capabilities: List[str],
    owner: str,
    payment_address: str = "",
    payment_tokens: Optional[List[str]] = None,
    metadata: Optional[dict] = None,
) -> Agent:
    """
    Register an agent with the registry.

    Example:
        >>> agent = register_agent(
        ...     name="Price Oracle",
        ...     endpoint="https://oracle.example.com",
        ...     capabilities=["price_feed"],
        ...     owner="SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7",
        ... )
    """
    return _get_store().register_agent(
        name=name,
        endpoint=endpoint,
        capabilities=capabilities,
        owner=owner,
        payment_address=payment_address,
        payment_tokens=payment_tokens,
        metadata=metadata,
    )


def get_agent(agent_id: str) -> Optional[Agent]:
    """Get a specific agent by ID."""
    return _get_store().get_agent(agent_id)


def get_reputation(agent_id: str) -> Optional[Reputation]:
    """Get an agent's reputation."""
    return _get_store().get_reputation(agent_id)


def discover_agents(
    capability: Optional[str] = None,
    payment_token: Optional[str] = None,
    min_rating: Optional[int] = None,
    limit: int = 20,
) -> List[RankedAgent]:
    """
    Find agents matching criteria, best first.

    Example:
        >>> oracles = discover_agents("price_feed", min_rating=70)
    """
    return AgentSelector(_get_store()).discover(DiscoveryQuery(
        capability=capability,
        payment_token=payment_token,
        min_rating=min_rating,
        limit=limit,
    ))


def find_best_agent(capability: str, payment_token: str = "STX") -> Optional[RankedAgent]:
    """Best agent for a capability, or None."""
    return AgentSelector(_get_store()).find_best(capability, PaymentToken.parse(payment_token))


def get_agent_tasks(agent_id: str, limit: int = 50) -> List[TaskRecord]:
    """Task history for an agent, newest first."""
    return _get_store().query_tasks(agent_id, limit=limit)


def leaderboard(limit: int = 10) -> List[RankedAgent]:
    """Top rated agents."""
    return AgentSelector(_get_store()).leaderboard(limit=limit)


def list_capabilities() -> List[str]:
    """Every capability offered in the registry."""
    return AgentSelector(_get_store()).list_capabilities()
