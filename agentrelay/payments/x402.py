"""
x402 payment documents.

``payment_required`` builds the body of an HTTP 402 answer: everything a
client needs to settle the fee and retry with an ``X-Payment`` header.
The discovery documents describe the paid endpoints up front.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from ..config import RelayConfig

X402_VERSION = 1


def payment_required(resource: str, price: int, config: RelayConfig, now: Optional[datetime] = None) -> dict:
    """Body of a 402 Payment Required response."""
    now = now or datetime.utcnow()
    expires_at = now + timedelta(minutes=config.payment_expiry_minutes)

    return {
        "error": "Payment Required",
        "code": "PAYMENT_REQUIRED",
        "resource": resource,
        "nonce": str(uuid.uuid4()),
        "expiresAt": expires_at.isoformat() + "Z",
        "network": config.network,
        "maxAmountRequired": str(price),
        "payTo": config.payment_address,
        "tokenType": "sBTC",
        "tokenContract": config.sbtc_contract_parts,
        "instructions": [
            "1. Call sBTC transfer with amount to recipient",
            "2. Wait for transaction confirmation",
            "3. Retry request with X-Payment header containing txid",
        ],
    }


def _accepts(resource: str, price: int, description: str, config: RelayConfig, schema: dict) -> dict:
    return {
        "scheme": "exact",
        "network": "stacks",
        "maxAmountRequired": str(price),
        "resource": resource,
        "description": description,
        "mimeType": "application/json",
        "payTo": config.payment_address,
        "maxTimeoutSeconds": 300,
        "asset": "sBTC",
        "extra": {"tokenContract": config.sbtc_contract_parts},
        "outputSchema": schema,
    }


def register_discovery(config: RelayConfig) -> dict:
    """x402 discovery document for agent registration."""
    schema = {
        "input": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Human-readable agent name"},
                "endpoint": {"type": "string", "description": "Base URL for agent API"},
                "capabilities": {"type": "array", "items": {"type": "string"}, "description": "List of agent capabilities"},
                "payment_address": {"type": "string", "description": "Stacks address for receiving payments"},
                "payment_tokens": {"type": "array", "items": {"type": "string", "enum": ["STX", "sBTC"]}},
                "metadata": {"type": "object", "description": "Additional agent metadata"},
                "signature": {"type": "string", "description": "Signed message proving ownership"},
            },
            "required": ["name", "endpoint", "capabilities", "payment_address", "signature"],
        },
        "output": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean"},
                "message": {"type": "string"},
                "agent": {"type": "object"},
            },
        },
    }
    return {
        "x402Version": X402_VERSION,
        "name": "x402 Agents Registry",
        "accepts": [_accepts(
            "/register", config.register_price,
            "Register an AI agent with the x402 agent registry", config, schema,
        )],
    }


def orchestrate_discovery(config: RelayConfig) -> dict:
    """x402 discovery document for orchestration."""
    schema = {
        "input": {
            "type": "object",
            "properties": {
                "tasks": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "capability": {"type": "string", "description": "Required capability for this task"},
                            "input": {"type": "object", "description": "Input data for the task"},
                            "max_payment": {"type": "number", "description": "Maximum payment in satoshis"},
                        },
                        "required": ["capability", "input"],
                    },
                },
                "strategy": {"type": "string", "enum": ["sequential", "parallel", "best_agent"]},
            },
            "required": ["tasks"],
        },
        "output": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean"},
                "orchestration": {"type": "object"},
                "results": {"type": "array"},
                "total_time_ms": {"type": "number"},
                "caller": {"type": "string"},
            },
        },
    }
    return {
        "x402Version": X402_VERSION,
        "name": "x402 Agent Orchestration",
        "accepts": [_accepts(
            "/orchestrate", config.orchestration_price,
            "Execute multi-agent task chains with automatic agent discovery and routing", config, schema,
        )],
    }
