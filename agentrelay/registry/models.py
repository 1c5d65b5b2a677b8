"""
Data models for Agent Registry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import httpx


NEUTRAL_RATING = 50


def validate_endpoint(endpoint: str) -> str:
    """
    Check that an endpoint is an absolute http(s) URL and return it without
    a trailing slash.

    Raises:
        ValueError: if the URL cannot be parsed or has no host
    """
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise ValueError(f"Invalid endpoint {endpoint!r}: {e}")
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"Invalid endpoint {endpoint!r}: must be an absolute http(s) URL")
    return endpoint.rstrip("/")


class PaymentToken(str, Enum):
    """Tokens an agent can be paid in."""
    STX = "STX"
    SBTC = "sBTC"

    @classmethod
    def parse(cls, value: str) -> "PaymentToken":
        """Parse a token name case-insensitively ("sbtc" -> SBTC)."""
        if isinstance(value, cls):
            return value
        for token in cls:
            if token.value.lower() == str(value).lower():
                return token
        raise ValueError(f"Unknown payment token: {value}")


class TaskStatus(str, Enum):
    """Lifecycle of an audited task."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Agent:
    """
    A registered agent in the network.

    Agents advertise their capabilities and an endpoint that the
    orchestrator calls as ``POST {endpoint}/{capability}``.
    """
    id: str
    name: str
    owner: str
    endpoint: str
    capabilities: list[str]
    payment_address: str = ""
    payment_tokens: list[PaymentToken] = field(default_factory=lambda: [PaymentToken.STX])
    metadata: dict = field(default_factory=dict)

    # Timestamps
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        caps = []
        for cap in self.capabilities or []:
            if cap and cap not in caps:
                caps.append(cap)
        if not caps:
            raise ValueError("An agent must declare at least one capability")
        self.capabilities = caps
        self.payment_tokens = [PaymentToken.parse(t) for t in self.payment_tokens]

    def has_capability(self, name: str) -> bool:
        """Exact membership check."""
        return name in self.capabilities

    def accepts(self, token: PaymentToken) -> bool:
        return token in self.payment_tokens

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "endpoint": self.endpoint,
            "capabilities": list(self.capabilities),
            "payment_address": self.payment_address,
            "payment_tokens": [t.value for t in self.payment_tokens],
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Agent":
        return cls(
            id=data["id"],
            name=data["name"],
            owner=data.get("owner", ""),
            endpoint=data["endpoint"],
            capabilities=list(data.get("capabilities", [])),
            payment_address=data.get("payment_address", ""),
            payment_tokens=data.get("payment_tokens") or [PaymentToken.STX],
            metadata=data.get("metadata", {}),
            created_at=datetime.fromisoformat(data["created_at"]) if "created_at" in data else datetime.utcnow(),
            updated_at=datetime.fromisoformat(data["updated_at"]) if "updated_at" in data else datetime.utcnow(),
        )


@dataclass
class Reputation:
    """
    Reputation of one agent, derived from its task history.

    ``rating`` is always recomputed from the counters by
    :func:`agentrelay.registry.reputation.compute_rating`; the only time it
    is set directly is when the row is created with the neutral prior.
    """
    agent_id: str
    total_tasks: int = 0
    successful_tasks: int = 0
    failed_tasks: int = 0
    total_earned_stx: int = 0  # microSTX
    total_earned_sbtc: int = 0  # satoshis
    avg_response_time_ms: int = 0
    rating: int = NEUTRAL_RATING
    last_activity: Optional[datetime] = None

    def earned(self, token: PaymentToken) -> int:
        if token == PaymentToken.SBTC:
            return self.total_earned_sbtc
        return self.total_earned_stx

    @property
    def total_earned(self) -> int:
        return self.total_earned_stx + self.total_earned_sbtc

    def to_dict(self) -> dict:
        return {
            "agent_id": self.agent_id,
            "total_tasks": self.total_tasks,
            "successful_tasks": self.successful_tasks,
            "failed_tasks": self.failed_tasks,
            "total_earned_stx": self.total_earned_stx,
            "total_earned_sbtc": self.total_earned_sbtc,
            "avg_response_time_ms": self.avg_response_time_ms,
            "rating": self.rating,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
        }


@dataclass(frozen=True)
class TaskRecord:
    """Audit entry for one agent invocation. Never modified once written."""
    id: str
    provider_agent_id: str
    task_type: str
    payment_txid: str
    payment_amount: int
    payment_token: PaymentToken
    status: TaskStatus
    request_hash: str
    started_at: datetime
    requester_agent_id: Optional[str] = None  # None for external callers
    response_hash: Optional[str] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_agent_id": self.requester_agent_id,
            "provider_agent_id": self.provider_agent_id,
            "task_type": self.task_type,
            "payment_txid": self.payment_txid,
            "payment_amount": self.payment_amount,
            "payment_token": self.payment_token.value,
            "status": self.status.value,
            "request_hash": self.request_hash,
            "response_hash": self.response_hash,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


@dataclass
class RankedAgent:
    """An agent together with its reputation, as returned by discovery."""
    agent: Agent
    reputation: Reputation

    def to_dict(self) -> dict[str, Any]:
        data = self.agent.to_dict()
        data["reputation"] = self.reputation.to_dict()
        return data
