"""
Shared service instances for the API routes.

The server wires these up at startup; tests swap them with ``configure``.
"""

from typing import Optional

from ..config import RelayConfig
from ..orchestration import AgentInvoker, Orchestrator
from ..payments import PaymentGate
from ..registry import AgentSelector, CapabilityStore

_config: Optional[RelayConfig] = None
_store: Optional[CapabilityStore] = None
_gate: Optional[PaymentGate] = None
_orchestrator: Optional[Orchestrator] = None


def configure(
    config: Optional[RelayConfig] = None,
    store: Optional[CapabilityStore] = None,
    gate: Optional[PaymentGate] = None,
    invoker: Optional[AgentInvoker] = None,
) -> None:
    """Set the instances the routes use. Anything omitted is built from config."""
    global _config, _store, _gate, _orchestrator
    _config = config or RelayConfig.from_env()
    _store = store or CapabilityStore(_config.resolved_db_path())
    _gate = gate or PaymentGate(_config)
    _orchestrator = Orchestrator(
        _store,
        _gate,
        invoker=invoker or AgentInvoker(timeout=_config.agent_timeout),
        config=_config,
    )


def _ensure():
    if _orchestrator is None:
        configure()


def get_config() -> RelayConfig:
    _ensure()
    return _config


def get_store() -> CapabilityStore:
    _ensure()
    return _store


def get_selector() -> AgentSelector:
    return AgentSelector(get_store())


def get_gate() -> PaymentGate:
    _ensure()
    return _gate


def get_orchestrator() -> Orchestrator:
    _ensure()
    return _orchestrator
