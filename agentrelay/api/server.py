"""
AgentRelay API Server

FastAPI-based REST API for the agent registry: free discovery routes, x402
paid registration and orchestration.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import RelayConfig
from ..exceptions import StoreError
from ..logs import configure_logging
from .payment_routes import router as payment_router
from .registry_routes import router as registry_router
from .services import configure, get_config, get_store

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="AgentRelay API",
    description="Agent registry with reputation and x402-paid orchestration",
    version=__version__,
)

# CORS middleware
# SECURITY: In production, set AGENTRELAY_CORS_ORIGINS, e.g. "https://app.example.com"
app.add_middleware(
    CORSMiddleware,
    allow_origins=RelayConfig.from_env().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(registry_router)
app.include_router(payment_router)


@app.exception_handler(StoreError)
async def store_error_handler(request, exc: StoreError):
    logger.error("Store failure on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=500, content={"error": "Storage failure", "details": exc.message})


@app.get("/")
async def protocol_info():
    """Protocol info and endpoint map."""
    return {
        "name": "agentrelay",
        "description": "Agent registry with reputation and x402-paid orchestration",
        "version": __version__,
        "protocol": {
            "identity": "Agent registration owned by the paying address",
            "reputation": "Verified, paid tasks build an agent's rating",
            "validation": "Task records with request/response digests",
        },
        "payment_tokens": ["STX", "sBTC"],
        "endpoints": {
            "free": [
                "GET / - Protocol info",
                "GET /agents - List agents (paginated)",
                "GET /agents/:id - Get agent details",
                "GET /agents/:id/reputation - Get agent reputation",
                "GET /agents/:id/tasks - Get agent task history",
                "GET /discover - Discover agents by capability",
                "GET /capabilities - List all capabilities",
                "GET /leaderboard - Top rated agents",
                "GET /find/:capability - Best agent for a capability",
            ],
            "x402_discovery": [
                "GET /register - x402 discovery for agent registration",
                "GET /orchestrate - x402 discovery for orchestration",
            ],
            "paid": [
                "POST /register - Register new agent (x402 payment required)",
                "POST /orchestrate - Execute multi-agent task chain (x402 payment required)",
            ],
        },
    }


@app.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "version": __version__, "agents": get_store().count_agents()}


# ==================== Demo ====================

DEMO_AGENTS = [
    {
        "name": "Alpha Intelligence",
        "endpoint": "https://stx402-alpha.pbtc21.workers.dev",
        "capabilities": ["market_analysis", "price_aggregation", "sentiment", "yield_calculation"],
    },
    {
        "name": "STX402 Oracle",
        "endpoint": "https://stx402-endpoint.pbtc21.workers.dev",
        "capabilities": ["price_feed", "sentiment", "oracle"],
    },
    {
        "name": "sBTC Yield Calculator",
        "endpoint": "https://sbtc-yield-x402.pbtc21.workers.dev",
        "capabilities": ["yield_calculation", "risk_assessment"],
    },
    {
        "name": "Meme Generator",
        "endpoint": "https://x402-meme.pbtc21.workers.dev",
        "capabilities": ["image_generation", "meme_creation"],
    },
]

DEMO_OWNER = "SPP5ZMH9NQDFD2K5CEQZ6P02AP8YPWMQ75TJW20M"


@app.post("/seed")
async def seed():
    """Register the demo agents."""
    store = get_store()
    results = []

    for demo in DEMO_AGENTS:
        try:
            agent = store.register_agent(
                name=demo["name"],
                endpoint=demo["endpoint"],
                capabilities=demo["capabilities"],
                owner=DEMO_OWNER,
                payment_address=DEMO_OWNER,
            )
            results.append({"success": True, "agent": agent.name, "id": agent.id})
        except StoreError as e:
            results.append({"success": False, "agent": demo["name"], "error": e.message})

    return {"message": "Demo agents seeded", "results": results}


def run_server(host: str = "0.0.0.0", port: int = 8080):
    """Run the API server."""
    import uvicorn

    configure_logging()
    configure(RelayConfig.from_env())
    config = get_config()
    logger.info("Serving AgentRelay on %s:%d (db %s)", host, port, config.resolved_db_path())
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
