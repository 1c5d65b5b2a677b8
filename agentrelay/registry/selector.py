"""
Agent discovery and ranking.
"""

from dataclasses import dataclass
from typing import Optional

from ..exceptions import SelectionError
from .models import PaymentToken, RankedAgent
from .store import CapabilityStore


@dataclass
class DiscoveryQuery:
    """Filter for :meth:`AgentSelector.discover`."""
    capability: Optional[str] = None
    payment_token: Optional[PaymentToken] = None
    min_rating: Optional[int] = None
    limit: int = 20
    offset: int = 0

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if self.offset < 0:
            raise ValueError("offset must not be negative")
        if self.min_rating is not None and not 0 <= self.min_rating <= 100:
            raise ValueError("min_rating must be between 0 and 100")
        if self.payment_token is not None:
            self.payment_token = PaymentToken.parse(self.payment_token)

    def to_dict(self) -> dict:
        return {
            "capability": self.capability,
            "payment_token": self.payment_token.value if self.payment_token else None,
            "min_rating": self.min_rating,
            "limit": self.limit,
            "offset": self.offset,
        }


def _rank_key(entry: RankedAgent):
    return (-entry.reputation.rating, -entry.reputation.successful_tasks)


class AgentSelector:
    """
    Finds agents for a capability, best first.

    Ranking: rating (desc), then successful tasks (desc), then registration
    order. The sort is stable, so equal agents keep the store's order and
    repeated queries return identical lists.
    """

    def __init__(self, store: CapabilityStore):
        self.store = store

    def discover(self, query: Optional[DiscoveryQuery] = None) -> list[RankedAgent]:
        """
        Discover agents matching a query.

        Args:
            query: Filters; matches every agent when omitted

        Returns:
            Ranked list of matching agents
        """
        query = query or DiscoveryQuery()

        candidates = [
            RankedAgent(agent, reputation)
            for agent, reputation in self.store.query_agents(min_rating=query.min_rating)
        ]

        if query.capability:
            candidates = [c for c in candidates if c.agent.has_capability(query.capability)]

        if query.payment_token:
            candidates = [c for c in candidates if c.agent.accepts(query.payment_token)]

        candidates.sort(key=_rank_key)
        return candidates[query.offset:query.offset + query.limit]

    def find_best(
        self,
        capability: str,
        payment_token: PaymentToken = PaymentToken.STX,
    ) -> Optional[RankedAgent]:
        """
        Best agent for a capability, or None if no agent offers it.
        """
        matches = self.discover(DiscoveryQuery(
            capability=capability,
            payment_token=payment_token,
            min_rating=0,
            limit=1,
        ))
        return matches[0] if matches else None

    def require_best(
        self,
        capability: str,
        payment_token: PaymentToken = PaymentToken.STX,
    ) -> RankedAgent:
        """Like :meth:`find_best` but raises SelectionError when nothing matches."""
        best = self.find_best(capability, payment_token)
        if best is None:
            raise SelectionError(capability)
        return best

    def leaderboard(self, limit: int = 10) -> list[RankedAgent]:
        """Top agents by rating, ties broken by total earnings."""
        entries = [RankedAgent(a, r) for a, r in self.store.query_agents()]
        entries.sort(key=lambda e: (-e.reputation.rating, -e.reputation.total_earned))
        return entries[:limit]

    def list_capabilities(self) -> list[str]:
        """All capabilities offered across the registry, sorted."""
        capabilities = set()
        for agent, _ in self.store.query_agents():
            capabilities.update(agent.capabilities)
        return sorted(capabilities)
