"""
Streamlab HTTP and WebSocket server.

This module exposes the stream registry through two surfaces that share
one registry instance:

- a WebSocket session channel at ``/ws`` carrying JSON frames
  ``{"event": ..., "data": ...}`` in both directions
- JSON request/response routes under ``/rxjs`` for collaborators
"""

import argparse
import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
import uvicorn

from streamlab import __version__
from streamlab.broadcast import BroadcastChannel, Subscription
from streamlab.config import Settings, load_settings
from streamlab.control import StreamControl
from streamlab.models import ConfigurationError
from streamlab.presets import UnknownPresetError
from streamlab.tools.data_generators import available_kinds
from streamlab.tools.stream_registry import StreamRegistry


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class StreamStartRequest(BaseModel):
    """Request body for starting a stream. Unknown keys are accepted and ignored."""
    model_config = ConfigDict(extra="allow")

    streamName: Optional[str] = None
    interval: Optional[float] = None
    duration: Optional[float] = None
    errorRate: Optional[float] = None
    duplicateRate: Optional[float] = None
    delayVariation: Optional[float] = None
    burstMode: Optional[bool] = None
    burstSize: Optional[int] = None
    burstInterval: Optional[float] = None


def handle_session_message(control: StreamControl, message: Any) -> Optional[Dict[str, Any]]:
    """
    Apply one incoming session frame.

    Args:
        control: Control surface to act on
        message: Decoded JSON frame

    Returns:
        A reply frame for the sending connection only, or None
    """
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        logger.warning(f"Malformed session frame: {message!r}")
        return {"event": "error", "data": {"error": "frames must be objects with an 'event' field"}}

    event = message["event"]
    data = message.get("data")

    try:
        if event == "start-stream":
            control.start(data if data is not None else {})
            return None

        if event == "stop-stream":
            stream_name = data.get("streamName") if isinstance(data, dict) else data
            if not isinstance(stream_name, str):
                raise ConfigurationError("stop-stream needs a stream name")
            control.stop(stream_name)
            return None

        if event == "get-configs":
            return {"event": "stream-configs", "data": control.list_configs()}

    except ConfigurationError as e:
        logger.warning(f"Rejected {event}: {e}")
        return {"event": "error", "data": {"error": str(e)}}

    logger.warning(f"Unknown session event: {event}")
    return {"event": "error", "data": {"error": f"Unknown event: {event}"}}


def describe_validation_error(exc: RequestValidationError) -> str:
    """Flatten request validation errors into one ``{error}`` message."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        if not location:
            # Missing body, or a body that is not a JSON object
            return "streamName is required"
        messages.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(messages) or "invalid request"


def decode_frame(frame: Dict[str, Any]) -> Any:
    """
    Decode one received WebSocket frame as JSON.

    Text and UTF-8 binary frames are both accepted.

    Raises:
        WebSocketDisconnect: If the frame is a disconnect
        ValueError: If the frame is not valid JSON
    """
    if frame["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(frame.get("code", 1000))

    text = frame.get("text")
    if text is None:
        data = frame.get("bytes")
        if data is None:
            raise ValueError("empty frame")
        text = data.decode("utf-8")
    return json.loads(text)


async def _forward(websocket: WebSocket, subscription: Subscription):
    """Drain a subscription to its socket until the socket goes away."""
    try:
        while subscription.active:
            message = await subscription.receive()
            await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Stopped forwarding to #{subscription.subscription_id}: {e}")


def create_app(settings: Optional[Settings] = None, registry: Optional[StreamRegistry] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Server settings (loaded from the environment if not provided)
        registry: Stream registry to expose (a new one if not provided)

    Returns:
        FastAPI app with one registry shared by both surfaces
    """
    settings = settings or load_settings()
    if registry is None:
        registry = StreamRegistry(
            BroadcastChannel(),
            rng_factory=settings.rng_factory(),
            burst_stagger_ms=settings.burst_stagger_ms,
        )
    channel = registry.channel
    control = StreamControl(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Streamlab server ready")
        yield
        stopped = control.stop_all()
        logger.info(f"Shutting down, stopped {len(stopped)} streams")

    app = FastAPI(
        title="Streamlab",
        description="Configurable synthetic event streams for teaching reactive operators",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.control = control

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.warning(f"Bad stream config on {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = describe_validation_error(exc)
        logger.warning(f"Bad request body on {request.url.path}: {message}")
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(UnknownPresetError)
    async def unknown_preset_handler(request: Request, exc: UnknownPresetError):
        logger.warning(str(exc))
        return JSONResponse(status_code=404, content={"error": "Preset not found"})

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "streamlab",
            "status": "running",
            "version": __version__,
            "streamKinds": available_kinds(),
            "endpoints": {
                "session": "/ws",
                "streams": "/rxjs/streams",
                "presets": "/rxjs/presets",
                "health": "/health",
            },
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns the status of every active stream.
        """
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "streams": registry.get_status(),
            "subscribers": channel.subscriber_count,
        }

    router = APIRouter(prefix="/rxjs")

    @router.get("/streams")
    async def list_streams():
        return control.list_streams()

    @router.post("/streams/start")
    async def start_stream(request: StreamStartRequest):
        config = request.model_dump(exclude_none=True)
        stream = control.start(config, require_name=True)
        return {"message": "Stream started", "config": stream.config.to_dict()}

    @router.post("/streams/stop-all")
    async def stop_all_streams():
        control.stop_all()
        return {"message": "All streams stopped"}

    @router.post("/streams/stop/{stream_name}")
    async def stop_stream(stream_name: str):
        control.stop(stream_name)
        return {"message": "Stream stopped", "streamName": stream_name}

    @router.get("/presets")
    async def list_presets():
        return {"presets": control.list_presets()}

    @router.post("/presets/{preset_name}")
    async def start_preset(preset_name: str):
        preset = control.start_preset(preset_name)
        return {"message": f"Preset '{preset_name}' started", "preset": preset.to_dict()}

    app.include_router(router)

    @app.websocket("/ws")
    async def session_channel(websocket: WebSocket):
        """
        Session channel.

        Every connection receives all broadcast events plus the replies to
        its own commands. Replies go through the connection's own queue so
        only one task ever writes to the socket.
        """
        await websocket.accept()
        client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
        subscription = channel.subscribe(label=client)
        subscription.offer({"event": "stream-configs", "data": control.list_configs()})
        sender = asyncio.create_task(_forward(websocket, subscription))
        logger.info(f"✓ Client connected: {client}")

        try:
            while True:
                try:
                    message = decode_frame(await websocket.receive())
                except ValueError:
                    logger.warning(f"Undecodable frame from {client}")
                    subscription.offer({"event": "error", "data": {"error": "invalid JSON"}})
                    continue

                reply = handle_session_message(control, message)
                if reply is not None:
                    subscription.offer(reply)

        except WebSocketDisconnect:
            logger.info(f"✗ Client disconnected: {client}")

        finally:
            channel.unsubscribe(subscription)
            sender.cancel()
            with suppress(asyncio.CancelledError):
                await sender

    return app


app = create_app()


def start_server(host: str = "0.0.0.0", port: int = 3001, settings: Optional[Settings] = None):
    """
    Start the streamlab server.

    Args:
        host: Host to bind to
        port: Port to bind to
        settings: Settings for the app (loaded from the environment if not provided)
    """
    logger.info(f"Starting streamlab server on {host}:{port}")
    uvicorn.run(create_app(settings), host=host, port=port)


def main():
    """Main entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(description="Streamlab stream server")
    parser.add_argument("--host", default=settings.host, help=f"Host to bind to (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port to bind to (default: {settings.port})")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.getLogger().setLevel(args.log_level.upper())
    start_server(host=args.host, port=args.port, settings=settings)


if __name__ == "__main__":
    main()
