"""
Free REST routes: agent lookup, discovery, leaderboard.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ..registry import DiscoveryQuery, PaymentToken
from .services import get_config, get_selector, get_store

router = APIRouter(tags=["registry"])


def _parse_token(value: Optional[str]) -> Optional[PaymentToken]:
    if value is None:
        return None
    try:
        return PaymentToken.parse(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid token. Must be one of: {[t.value for t in PaymentToken]}"
        )


@router.get("/agents")
async def list_agents(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List agents, best rated first."""
    selector = get_selector()
    ranked = selector.discover(DiscoveryQuery(limit=limit, offset=offset))

    return {
        "agents": [r.to_dict() for r in ranked],
        "total": get_store().count_agents(),
        "limit": limit,
        "offset": offset,
    }


@router.get("/agents/{agent_id}")
async def get_agent(agent_id: str):
    """Get an agent and its reputation."""
    store = get_store()

    agent = store.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    reputation = store.get_reputation(agent_id)
    return {
        "agent": agent.to_dict(),
        "reputation": reputation.to_dict() if reputation else None,
    }


@router.get("/agents/{agent_id}/reputation")
async def get_agent_reputation(agent_id: str):
    """Get just the reputation of an agent."""
    reputation = get_store().get_reputation(agent_id)
    if not reputation:
        raise HTTPException(status_code=404, detail="Agent not found")
    return reputation.to_dict()


@router.get("/agents/{agent_id}/tasks")
async def get_agent_tasks(agent_id: str, limit: int = Query(50, ge=1, le=500)):
    """Task history of an agent, newest first."""
    tasks = get_store().query_tasks(agent_id, limit=limit)
    return {"tasks": [t.to_dict() for t in tasks]}


@router.get("/discover")
async def discover(
    capability: Optional[str] = Query(None, description="Filter by capability"),
    token: Optional[str] = Query(None, description="Filter by accepted payment token"),
    min_rating: Optional[int] = Query(None, ge=0, le=100, description="Minimum rating"),
    limit: int = Query(20, ge=1, le=100),
):
    """Discover agents by capability, token and rating."""
    query = DiscoveryQuery(
        capability=capability,
        payment_token=_parse_token(token),
        min_rating=min_rating,
        limit=limit,
    )
    agents = get_selector().discover(query)

    return {
        "query": query.to_dict(),
        "agents": [a.to_dict() for a in agents],
        "count": len(agents),
    }


@router.get("/capabilities")
async def list_capabilities():
    """Every capability offered in the registry."""
    return {"capabilities": get_selector().list_capabilities()}


@router.get("/leaderboard")
async def leaderboard(limit: int = Query(10, ge=1, le=100)):
    """Top agents by rating."""
    entries = get_selector().leaderboard(limit=limit)
    return {
        "leaderboard": [
            {
                "rank": i + 1,
                "agent": entry.agent.to_dict(),
                "reputation": entry.reputation.to_dict(),
            }
            for i, entry in enumerate(entries)
        ]
    }


@router.get("/find/{capability}")
async def find_best(capability: str, token: Optional[str] = Query(None)):
    """Best agent for a capability."""
    payment_token = _parse_token(token) or get_config().default_payment_token
    best = get_selector().find_best(capability, payment_token)

    if not best:
        raise HTTPException(status_code=404, detail={
            "error": "No agent found",
            "capability": capability,
            "suggestion": "Register an agent with this capability",
        })

    return {"capability": capability, "best_agent": best.to_dict()}
