"""
Orchestration of paid multi-agent workflows.
"""

from .audit import content_digest
from .engine import PREVIOUS_RESULT_KEY, Orchestrator, merge_previous
from .invoker import AgentInvoker, InvocationResult
from .models import (
    OrchestrationRequest,
    Strategy,
    TaskResult,
    TaskSpec,
    WorkflowResult,
)

__all__ = [
    "Orchestrator",
    "AgentInvoker",
    "InvocationResult",
    "OrchestrationRequest",
    "Strategy",
    "TaskSpec",
    "TaskResult",
    "WorkflowResult",
    "PREVIOUS_RESULT_KEY",
    "merge_previous",
    "content_digest",
]
