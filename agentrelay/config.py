"""
AgentRelay configuration.

All settings live on an explicit :class:`RelayConfig` that is handed to the
payment gate, the orchestrator and the HTTP layer. ``RelayConfig.from_env()``
reads ``AGENTRELAY_*`` environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import ConfigurationError
from .registry.models import PaymentToken
from .registry.store import default_db_path


DEFAULT_EXPLORER_URL = "https://api.hiro.so"
DEFAULT_PAYMENT_ADDRESS = "SPKH9AWG0ENZ87J1X0PBD4HETP22G8W22AFNVF8K"
DEFAULT_SBTC_CONTRACT = "SP3K8BC0PPEVCV7NZ6QSRWPQ2JE9E5B6N3PA0KBR9.token-sbtc"
DEFAULT_PAYMENT_CONTRACT = "SPP5ZMH9NQDFD2K5CEQZ6P02AP8YPWMQ75TJW20M.simple-oracle"


@dataclass
class RelayConfig:
    """Settings shared by the gate, the orchestrator and the server."""

    db_path: Optional[str] = None
    explorer_url: str = DEFAULT_EXPLORER_URL
    network: str = "mainnet"

    # Where registry fees go and which contracts count as payment
    payment_address: str = DEFAULT_PAYMENT_ADDRESS
    sbtc_contract: str = DEFAULT_SBTC_CONTRACT
    payment_contract: str = DEFAULT_PAYMENT_CONTRACT

    # Pricing in satoshis
    orchestration_price: int = 100
    register_price: int = 50

    # Nominal reward credited per task when the request has no max_payment
    default_task_payment: int = 1000
    default_payment_token: PaymentToken = PaymentToken.STX

    agent_timeout: float = 30.0
    explorer_timeout: float = 15.0
    payment_cache_ttl: float = 0.0
    payment_expiry_minutes: int = 10

    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def accepted_contracts(self) -> tuple[str, ...]:
        return (self.sbtc_contract, self.payment_contract)

    @property
    def sbtc_contract_parts(self) -> dict:
        address, _, name = self.sbtc_contract.partition(".")
        return {"address": address, "name": name}

    def resolved_db_path(self) -> str:
        return self.db_path or default_db_path()

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "RelayConfig":
        """Build a config from ``AGENTRELAY_*`` environment variables."""
        env = os.environ if environ is None else environ
        config = cls()

        config.db_path = env.get("AGENTRELAY_DB_PATH") or None
        config.explorer_url = env.get("AGENTRELAY_EXPLORER_URL", config.explorer_url).rstrip("/")
        config.network = env.get("AGENTRELAY_NETWORK", config.network)
        config.payment_address = env.get("AGENTRELAY_PAYMENT_ADDRESS", config.payment_address)
        config.sbtc_contract = env.get("AGENTRELAY_SBTC_CONTRACT", config.sbtc_contract)
        config.payment_contract = env.get("AGENTRELAY_PAYMENT_CONTRACT", config.payment_contract)

        config.orchestration_price = _int(env, "AGENTRELAY_ORCHESTRATION_PRICE", config.orchestration_price)
        config.register_price = _int(env, "AGENTRELAY_REGISTER_PRICE", config.register_price)
        config.default_task_payment = _int(env, "AGENTRELAY_DEFAULT_TASK_PAYMENT", config.default_task_payment)
        config.agent_timeout = _float(env, "AGENTRELAY_AGENT_TIMEOUT", config.agent_timeout)
        config.explorer_timeout = _float(env, "AGENTRELAY_EXPLORER_TIMEOUT", config.explorer_timeout)
        config.payment_cache_ttl = _float(env, "AGENTRELAY_PAYMENT_CACHE_TTL", config.payment_cache_ttl)

        if "AGENTRELAY_DEFAULT_TOKEN" in env:
            try:
                config.default_payment_token = PaymentToken.parse(env["AGENTRELAY_DEFAULT_TOKEN"])
            except ValueError as e:
                raise ConfigurationError(str(e))

        origins = env.get("AGENTRELAY_CORS_ORIGINS")
        if origins:
            config.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        return config


def _int(env, key: str, default: int) -> int:
    if key not in env:
        return default
    try:
        value = int(env[key])
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {env[key]!r}")
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative")
    return value


def _float(env, key: str, default: float) -> float:
    if key not in env:
        return default
    try:
        value = float(env[key])
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {env[key]!r}")
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative")
    return value
