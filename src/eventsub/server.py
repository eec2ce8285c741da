"""
eventsub status server — FastAPI application around the supervisor.

Endpoints:
    GET    /health                    Liveness check
    GET    /api/v1/subscriptions      Managed subscriptions and their state
    POST   /api/v1/subscriptions      Start keeping an endpoint subscribed
    DELETE /api/v1/subscriptions      Dispose one (?subscribe_url=...)
    GET    /api/v1/errors             Unresolved host error streaks
    GET    /api/v1/metrics            Subscription metrics
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from eventsub.config import EventSubConfig, load_config
from eventsub.resilience.metrics import get_metrics
from eventsub.supervisor import SubscriptionSupervisor

logger = logging.getLogger("eventsub.server")

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------
_config: EventSubConfig | None = None
_supervisor: SubscriptionSupervisor | None = None


class SubscribeBody(BaseModel):
    subscribe_url: str = Field(..., min_length=1, description="Event subscription URL of the remote service")
    notification_url: str = Field(..., min_length=1, description="Callback URL for NOTIFY requests")


def _build_supervisor(config: EventSubConfig) -> SubscriptionSupervisor:
    return SubscriptionSupervisor.from_config(config)


def _require_supervisor() -> SubscriptionSupervisor:
    if _supervisor is None:
        raise HTTPException(503, "Supervisor not running")
    return _supervisor


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    global _config, _supervisor

    _config = load_config(app.state.config_path)
    _supervisor = _build_supervisor(_config)
    _supervisor.start()
    for target in _config.subscriptions:
        _supervisor.subscribe(target.subscribe_url, target.notification_url)

    logger.info(f"eventsub ready on {_config.host}:{_config.port} with {len(_config.subscriptions)} subscriptions")
    yield

    # Shutdown
    await _supervisor.close()
    _supervisor = None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(config_path: Path | None = None) -> FastAPI:
    app = FastAPI(
        title="eventsub",
        version="0.1.0",
        description="UPnP event subscription renewal engine",
        lifespan=lifespan,
    )
    app.state.config_path = config_path

    @app.get("/health")
    async def liveness():
        return {"status": "ok"}

    @app.get("/api/v1/subscriptions")
    async def list_subscriptions():
        supervisor = _require_supervisor()
        return {"subscriptions": [s.to_dict() for s in supervisor.subscriptions]}

    @app.post("/api/v1/subscriptions", status_code=201)
    async def add_subscription(body: SubscribeBody):
        supervisor = _require_supervisor()
        existing = supervisor.get(body.subscribe_url)
        if existing is not None and existing.notification_url != body.notification_url:
            raise HTTPException(409, f"{body.subscribe_url} is already subscribed with callback {existing.notification_url}")
        sub = supervisor.subscribe(body.subscribe_url, body.notification_url)
        return sub.to_dict()

    @app.delete("/api/v1/subscriptions")
    async def remove_subscription(subscribe_url: str):
        supervisor = _require_supervisor()
        if supervisor.unsubscribe(subscribe_url) is None:
            raise HTTPException(404, f"No subscription for {subscribe_url}")
        return {"status": "disposed", "subscribe_url": subscribe_url}

    @app.get("/api/v1/errors")
    async def host_errors():
        return _require_supervisor().watcher.get_summary()

    @app.get("/api/v1/metrics")
    async def metrics():
        return get_metrics().get_summary()

    return app
