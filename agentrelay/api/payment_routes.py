"""
Paid REST routes (x402): agent registration and orchestration.

Without an ``X-Payment`` header these answer 402 with payment instructions;
with one, the payment gate decides before anything else happens.
"""

import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import StoreError
from ..orchestration import OrchestrationRequest
from ..payments import orchestrate_discovery, payment_required, register_discovery
from ..registry import validate_endpoint
from .services import get_config, get_gate, get_orchestrator, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["paid"])


# === Request Models ===

class RegisterAgentRequest(BaseModel):
    name: str = ""
    endpoint: str = ""
    capabilities: list[str] = Field(default_factory=list)
    payment_address: str = ""
    payment_tokens: list[Literal["STX", "sBTC"]] = Field(default_factory=lambda: ["STX"])
    metadata: dict = Field(default_factory=dict)
    signature: str = ""


class TaskModel(BaseModel):
    capability: str
    input: Any = Field(default_factory=dict)
    max_payment: Optional[int] = Field(None, ge=0)


class OrchestrateRequest(BaseModel):
    tasks: list[TaskModel] = Field(default_factory=list)
    strategy: Literal["sequential", "parallel", "best_agent"] = "sequential"


REGISTER_REQUIRED = ["name", "endpoint", "capabilities", "payment_address", "signature"]

ORCHESTRATE_EXAMPLE = {
    "tasks": [
        {"capability": "price_feed", "input": {"token": "BTC"}},
        {"capability": "sentiment", "input": {"token": "BTC"}},
    ],
    "strategy": "sequential",
}


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


# === Discovery ===

@router.get("/register")
async def register_info():
    """x402 discovery for agent registration."""
    return register_discovery(get_config())


@router.get("/orchestrate")
async def orchestrate_info():
    """x402 discovery for orchestration."""
    return orchestrate_discovery(get_config())


# === Registration ===

async def _handle_registration(request: Request, x_payment: Optional[str]):
    config = get_config()

    if not x_payment:
        return JSONResponse(status_code=402, content=payment_required("/register", config.register_price, config))

    decision = await get_gate().admit(x_payment)
    if not decision.accepted:
        return JSONResponse(status_code=403, content={
            "error": "Payment verification failed",
            "details": decision.reason,
        })

    data = await _json_body(request)
    try:
        body = RegisterAgentRequest.model_validate(data if isinstance(data, dict) else {})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={
            "error": "Invalid registration request",
            "details": e.errors(include_url=False, include_context=False),
            "required": REGISTER_REQUIRED,
        })

    if not body.name or not body.endpoint or not body.capabilities or not body.payment_address:
        return JSONResponse(status_code=400, content={
            "error": "Missing required fields",
            "required": REGISTER_REQUIRED,
        })

    try:
        endpoint = validate_endpoint(body.endpoint)
    except ValueError as e:
        return JSONResponse(status_code=400, content={
            "error": "Invalid endpoint",
            "details": str(e),
        })

    # Ownership proof is only required to be present; it is not verified.
    if not body.signature:
        return JSONResponse(status_code=400, content={
            "error": "Signature required to prove ownership",
            "message_to_sign": f"Register agent: {body.name} at {body.endpoint}",
        })

    try:
        agent = get_store().register_agent(
            name=body.name,
            endpoint=endpoint,
            capabilities=body.capabilities,
            owner=decision.payer,
            payment_address=body.payment_address,
            payment_tokens=body.payment_tokens,
            metadata=body.metadata,
        )
    except (StoreError, ValueError) as e:
        logger.error("Registration of %s failed: %s", body.name, e)
        return JSONResponse(status_code=500, content={
            "error": "Registration failed",
            "details": str(e),
        })

    return JSONResponse(status_code=201, content={
        "success": True,
        "message": "Agent registered successfully",
        "agent": agent.to_dict(),
    })


@router.post("/register")
async def register_agent(request: Request, x_payment: Optional[str] = Header(None, alias="X-Payment")):
    """Register a new agent (payment + signature required)."""
    return await _handle_registration(request, x_payment)


@router.post("/agents")
async def register_agent_legacy(request: Request, x_payment: Optional[str] = Header(None, alias="X-Payment")):
    """Legacy registration endpoint, same as POST /register."""
    return await _handle_registration(request, x_payment)


# === Orchestration ===

@router.post("/orchestrate")
async def orchestrate(request: Request, x_payment: Optional[str] = Header(None, alias="X-Payment")):
    """Execute a multi-agent task chain."""
    config = get_config()

    if not x_payment:
        return JSONResponse(
            status_code=402,
            content=payment_required("/orchestrate", config.orchestration_price, config),
        )

    data = await _json_body(request)
    try:
        body = OrchestrateRequest.model_validate(data if isinstance(data, dict) else {})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={
            "error": "Invalid orchestration request",
            "details": e.errors(include_url=False, include_context=False),
            "example": ORCHESTRATE_EXAMPLE,
        })

    if not body.tasks:
        return JSONResponse(status_code=400, content={
            "error": "No tasks provided",
            "example": ORCHESTRATE_EXAMPLE,
        })

    workflow = OrchestrationRequest.from_dict(body.model_dump())

    try:
        result = await get_orchestrator().run(workflow, x_payment)
    except StoreError as e:
        logger.error("Orchestration aborted: %s", e)
        return JSONResponse(status_code=500, content={
            "error": "Orchestration failed",
            "details": e.message,
        })

    if not result.admitted:
        return JSONResponse(status_code=403, content={
            "error": "Payment verification failed",
            "details": result.results[0].error,
        })

    return {
        "success": result.success,
        "orchestration": {
            "strategy": result.strategy.value,
            "tasks_requested": len(workflow.tasks),
            "tasks_completed": result.tasks_completed,
        },
        "results": [r.to_dict() for r in result.results],
        "total_time_ms": result.total_time_ms,
        "caller": result.caller,
    }
