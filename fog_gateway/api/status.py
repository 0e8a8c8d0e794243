"""Health and status endpoints for the gateway."""

from dataclasses import asdict

from fastapi import APIRouter, FastAPI, HTTPException

from ..gateway import FogGateway


def create_status_router(gateway: FogGateway) -> APIRouter:
    router = APIRouter(tags=["status"])

    @router.get("/health")
    def health():
        """Liveness probe: ok mientras el proceso esté vivo."""
        return {"status": "ok", "running": gateway.running}

    @router.get("/status")
    def status():
        return gateway.get_status()

    @router.get("/actuators")
    def actuators():
        """Estado actual de actuadores por zona."""
        return gateway.detector.get_actuator_states()

    @router.get("/windows/{zone}/{metric}")
    def current_window(zone: str, metric: str):
        """Stats de la ventana en curso (sin publicar)."""
        snapshot = gateway.aggregator.get_current_stats(zone, metric)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="no data in current window")
        return {"zone": zone, "metric": metric, **asdict(snapshot)}

    return router


def create_status_app(gateway: FogGateway) -> FastAPI:
    app = FastAPI(title="Fog Gateway Status", version="0.1.0")
    app.include_router(create_status_router(gateway))
    return app
