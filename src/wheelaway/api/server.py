"""HTTP API for the presentation layer.

Exposes the controller's commands and read projections:

    GET  /health
    GET  /status
    POST /session/start
    POST /session/stop
    POST /session/interval   <- {"interval_ms": 15000}
    POST /capture                                    (manual capture)
    GET  /capture/current                            (image bytes)
    GET  /ports
    POST /ports/refresh
    POST /device/connect     <- {"port": "COM3"}
    POST /device/disconnect
    POST /device/command     <- {"command": "BLINK"}
    POST /pointer/start
    POST /pointer/stop

Commands answer ``{"success": bool, "message": str}``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

import wheelaway
from wheelaway.controller import WheelAway
from wheelaway.domain.models import AppStatus, CommandResult, PortDescriptor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class IntervalRequest(BaseModel):
    interval_ms: int = Field(gt=0, description="Milliseconds between the end of one cycle and the next")


class ConnectRequest(BaseModel):
    port: str | None = Field(default=None, description="Port name; omit to use the configured default")


class CommandRequest(BaseModel):
    command: str = Field(min_length=1, description="Raw command line for the device, e.g. 'ON'")


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = wheelaway.__version__
    session: str = "idle"
    device: str = "disconnected"


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(controller: WheelAway, manage_lifecycle: bool = True) -> FastAPI:
    """Create the API application around a controller.

    Args:
        controller: The component graph to expose.
        manage_lifecycle: Run controller startup/shutdown in the app
            lifespan. Tests that drive the controller directly can turn
            this off.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await controller.startup()
        logger.info("API started")
        yield
        if manage_lifecycle:
            await controller.shutdown()
        logger.info("API stopped")

    app = FastAPI(
        title="wheelaway",
        description="Productivity monitor control API",
        version=wheelaway.__version__,
        lifespan=lifespan,
    )
    app.state.controller = controller

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(
            session=controller.scheduler.state.value,
            device=controller.link.state.value,
        )

    @app.get("/status")
    async def get_status() -> AppStatus:
        return controller.status()

    # -------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------

    @app.post("/session/start")
    async def start_session() -> CommandResult:
        return await controller.start()

    @app.post("/session/stop")
    async def stop_session() -> CommandResult:
        return await controller.stop()

    @app.post("/session/interval")
    async def set_interval(request: IntervalRequest) -> CommandResult:
        result = await controller.retune(request.interval_ms)
        if not result.success:
            raise HTTPException(status_code=400, detail=result.message)
        return result

    # -------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------

    @app.post("/capture")
    async def manual_capture() -> CommandResult:
        return await controller.manual_capture()

    @app.get("/capture/current")
    async def current_capture() -> Response:
        with controller.capture.lease() as artifact:
            if artifact is None:
                raise HTTPException(status_code=404, detail="Nothing captured yet")
            return Response(
                content=artifact.data,
                media_type=artifact.media_type,
                headers={"X-Capture-Generation": str(artifact.generation)},
            )

    # -------------------------------------------------------------------
    # Device
    # -------------------------------------------------------------------

    @app.get("/ports")
    async def list_ports() -> list[PortDescriptor]:
        return controller.link.ports

    @app.post("/ports/refresh")
    async def refresh_ports() -> CommandResult:
        return await controller.refresh_ports()

    @app.post("/device/connect")
    async def connect_device(request: ConnectRequest) -> CommandResult:
        return await controller.connect(request.port)

    @app.post("/device/disconnect")
    async def disconnect_device() -> CommandResult:
        return await controller.disconnect()

    @app.post("/device/command")
    async def send_device_command(request: CommandRequest) -> CommandResult:
        return await controller.send_raw(request.command)

    # -------------------------------------------------------------------
    # Pointer
    # -------------------------------------------------------------------

    @app.post("/pointer/start")
    async def start_pointer() -> CommandResult:
        return await controller.start_tracking()

    @app.post("/pointer/stop")
    async def stop_pointer() -> CommandResult:
        return await controller.stop_tracking()

    return app


def serve(controller: WheelAway, host: str = "127.0.0.1", port: int = 8765) -> None:
    """Run the API with uvicorn until interrupted."""
    app = create_app(controller)
    uvicorn.run(app, host=host, port=port, log_config=None)
