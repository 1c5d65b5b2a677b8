"""
AgentRelay - Registry, reputation and paid orchestration for service agents

Agents register capabilities and an endpoint, earn a 0-100 rating from the
tasks they complete, and get chained into paid workflows:

    from agentrelay import CapabilityStore, Orchestrator, PaymentGate, RelayConfig
    from agentrelay import OrchestrationRequest, TaskSpec, Strategy

    config = RelayConfig.from_env()
    store = CapabilityStore(config.db_path)
    orchestrator = Orchestrator(store, PaymentGate(config), config=config)

    result = await orchestrator.run(
        OrchestrationRequest([TaskSpec("price_feed", {"token": "BTC"})], Strategy.BEST_AGENT),
        payment_reference="0x...",
    )

For quick scripts, the module-level registry functions use a default store:

    from agentrelay import register_agent, discover_agents
"""

__version__ = "1.0.0"

from .config import RelayConfig
from .exceptions import (
    AgentRelayError,
    AdmissionError,
    ConfigurationError,
    DeserializationError,
    ExplorerError,
    SelectionError,
    StoreError,
    TransportError,
)

# Agent Registry - identity, reputation, discovery
from .registry import (
    Agent,
    AgentSelector,
    CapabilityStore,
    DiscoveryQuery,
    PaymentToken,
    RankedAgent,
    Reputation,
    TaskOutcome,
    TaskRecord,
    TaskStatus,
    apply_outcome,
    compute_rating,
    register_agent,
    get_agent,
    get_reputation,
    discover_agents,
    find_best_agent,
    get_agent_tasks,
    leaderboard,
    list_capabilities,
)

# Payments
from .payments import HiroExplorer, PaymentDecision, PaymentGate

# Orchestration
from .orchestration import (
    AgentInvoker,
    OrchestrationRequest,
    Orchestrator,
    Strategy,
    TaskResult,
    TaskSpec,
    WorkflowResult,
)

__all__ = [
    "__version__",
    "RelayConfig",
    # Errors
    "AgentRelayError",
    "AdmissionError",
    "ConfigurationError",
    "DeserializationError",
    "ExplorerError",
    "SelectionError",
    "StoreError",
    "TransportError",
    # Registry
    "Agent",
    "AgentSelector",
    "CapabilityStore",
    "DiscoveryQuery",
    "PaymentToken",
    "RankedAgent",
    "Reputation",
    "TaskOutcome",
    "TaskRecord",
    "TaskStatus",
    "apply_outcome",
    "compute_rating",
    "register_agent",
    "get_agent",
    "get_reputation",
    "discover_agents",
    "find_best_agent",
    "get_agent_tasks",
    "leaderboard",
    "list_capabilities",
    # Payments
    "HiroExplorer",
    "PaymentDecision",
    "PaymentGate",
    # Orchestration
    "AgentInvoker",
    "OrchestrationRequest",
    "Orchestrator",
    "Strategy",
    "TaskResult",
    "TaskSpec",
    "WorkflowResult",
]
