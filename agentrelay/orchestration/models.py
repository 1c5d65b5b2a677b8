"""
Request and result types for orchestrated workflows.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Strategy(str, Enum):
    """How the tasks of a workflow are executed."""
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    BEST_AGENT = "best_agent"


@dataclass
class TaskSpec:
    """One requested task: a capability, its input and an optional payment ceiling."""
    capability: str
    input: Any = None
    max_payment: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "TaskSpec":
        if not data.get("capability"):
            raise ValueError("Each task needs a capability")
        max_payment = data.get("max_payment")
        if max_payment is not None:
            max_payment = int(max_payment)
            if max_payment < 0:
                raise ValueError("max_payment must not be negative")
        return cls(
            capability=data["capability"],
            input=data.get("input", {}),
            max_payment=max_payment,
        )


@dataclass
class OrchestrationRequest:
    """Ordered tasks plus the strategy to run them with."""
    tasks: list[TaskSpec] = field(default_factory=list)
    strategy: Strategy = Strategy.SEQUENTIAL

    @classmethod
    def from_dict(cls, data: dict) -> "OrchestrationRequest":
        return cls(
            tasks=[TaskSpec.from_dict(t) for t in data.get("tasks") or []],
            strategy=Strategy(data.get("strategy") or Strategy.SEQUENTIAL.value),
        )


@dataclass
class TaskResult:
    """What happened to one task of a workflow."""
    capability: str
    agent_id: str
    agent_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    time_ms: int = 0

    def to_dict(self) -> dict:
        result = {
            "capability": self.capability,
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "success": self.success,
            "time_ms": self.time_ms,
        }
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class WorkflowResult:
    """Aggregated outcome of one orchestration."""
    success: bool
    results: list[TaskResult]
    total_time_ms: int
    strategy: Strategy
    caller: Optional[str] = None
    admitted: bool = True

    @property
    def tasks_completed(self) -> int:
        return sum(1 for r in self.results if r.success)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
            "total_time_ms": self.total_time_ms,
            "strategy": self.strategy.value,
            "caller": self.caller,
            "admitted": self.admitted,
        }
