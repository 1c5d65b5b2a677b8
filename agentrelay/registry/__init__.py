"""
Agent Registry - identity, reputation and discovery for paid agents.

Enables agents to:
- Register themselves with capabilities and a callable endpoint
- Be discovered by capability, accepted token and minimum rating
- Build reputation through completed, paid tasks
- Leave an audit trail of every invocation
"""

from .models import (
    Agent,
    PaymentToken,
    RankedAgent,
    Reputation,
    TaskRecord,
    TaskStatus,
    validate_endpoint,
)
from .store import CapabilityStore
from .reputation import (
    TaskOutcome,
    apply_outcome,
    compute_rating,
    is_consistent,
)
from .selector import AgentSelector, DiscoveryQuery
from .client import (
    register_agent,
    get_agent,
    get_reputation,
    discover_agents,
    find_best_agent,
    get_agent_tasks,
    leaderboard,
    list_capabilities,
)

__all__ = [
    # Models
    "Agent",
    "PaymentToken",
    "RankedAgent",
    "Reputation",
    "TaskRecord",
    "TaskStatus",
    "validate_endpoint",
    # Store and selection
    "CapabilityStore",
    "AgentSelector",
    "DiscoveryQuery",
    # Reputation engine
    "TaskOutcome",
    "apply_outcome",
    "compute_rating",
    "is_consistent",
    # Convenience API
    "register_agent",
    "get_agent",
    "get_reputation",
    "discover_agents",
    "find_best_agent",
    "get_agent_tasks",
    "leaderboard",
    "list_capabilities",
]
