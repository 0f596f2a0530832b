"""Health check endpoint.

Learn: Reports the pieces a supervisor cares about — Redis reachability,
the bus bridge state (a FAILED bridge means no live events until restart),
open gateway connections and scheduled job stats.
"""

from fastapi import APIRouter, Request

from managemate import __version__
from managemate.realtime.bridge import BridgeState

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and realtime components."""
    state = request.app.state
    checks = {"server": "ok", "version": __version__}

    publisher = getattr(state, "publisher", None)
    try:
        await publisher.redis.ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    bridge = getattr(state, "bridge", None)
    checks["bridge"] = bridge.state.value if bridge else "disabled"

    gateway = getattr(state, "gateway", None)
    scheduler = getattr(state, "scheduler", None)

    healthy = checks["redis"] == "ok" and checks["bridge"] == BridgeState.CONNECTED.value
    return {
        "status": "healthy" if healthy else "degraded",
        **checks,
        "connections": gateway.connection_count if gateway else 0,
        "jobs": scheduler.stats() if scheduler else {},
    }
