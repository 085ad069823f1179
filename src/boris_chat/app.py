import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse, StreamingResponse

from .backend import BackendError, OllamaClient
from .config import MODEL_CONFIGS, MODELS, load_settings
from .events import SSE_DONE, STREAM_HEADERS, encode_sse
from .models import ChatRequest
from .plugins.calculator_plugin import CalculatorPlugin
from .plugins.weather_plugin import WeatherPlugin
from .sequencer import EventSequencer, Turn
from .tool_registry import ToolRegistry

load_dotenv()

logger = logging.getLogger(__name__)

settings = load_settings()

# Shared across requests; created lazily so tests can override the dependency
_sequencer: Optional[EventSequencer] = None


def create_default_registry() -> ToolRegistry:
    """Registry with the tools offered to every model that supports them."""
    plugins = [WeatherPlugin(), CalculatorPlugin()]
    return ToolRegistry.from_plugins(plugins)


def get_sequencer() -> EventSequencer:
    global _sequencer
    if _sequencer is None:
        client = OllamaClient(settings.base_url, timeout=settings.request_timeout)
        _sequencer = EventSequencer(
            client,
            create_default_registry(),
            model_configs=MODEL_CONFIGS,
            models=MODELS,
            max_steps=settings.max_steps,
        )
        logger.info(f"Using chat backend at {settings.base_url}")
    return _sequencer


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    global _sequencer
    if _sequencer is not None:
        await _sequencer.client.close()
        _sequencer = None


app = FastAPI(lifespan=lifespan)


async def encode_turn(turn: Turn) -> AsyncIterator[str]:
    """Serialise a turn as server-sent events, closing it when the client goes away."""
    try:
        async for event in turn:
            yield encode_sse(event)
        yield SSE_DONE
    finally:
        await turn.aclose()


@app.post("/api/chat")
async def chat(body: ChatRequest, sequencer: EventSequencer = Depends(get_sequencer)):
    """Stream one assistant turn for the posted conversation."""
    model = body.model or settings.default_model
    messages = [m.to_outbound() for m in body.messages]

    try:
        turn = await sequencer.stream(messages, model, think=body.think)
    except BackendError as e:
        logger.error(f"ERROR: Backend request failed: {e.message}")
        return JSONResponse(status_code=502, content={"error": e.message})

    return StreamingResponse(
        encode_turn(turn), media_type="text/event-stream", headers=STREAM_HEADERS
    )


@app.get("/api/models")
async def list_models():
    """Models offered by the model picker."""
    return {
        "default": settings.default_model,
        "models": [
            {"name": m.name, "value": m.value, "supportsTools": m.supports_tools}
            for m in MODELS
        ],
    }


@app.get("/api/models/installed")
async def list_installed_models(sequencer: EventSequencer = Depends(get_sequencer)):
    """Models actually present on the backend."""
    try:
        names = await sequencer.client.list_models()
    except BackendError as e:
        logger.error(f"ERROR: Could not list backend models: {e.message}")
        return JSONResponse(status_code=502, content={"error": e.message})
    return {"models": names}


@app.get("/api/tools")
async def list_tools(sequencer: EventSequencer = Depends(get_sequencer)):
    """Registered tools with the texts shown while a call runs, succeeds or fails."""
    return {"tools": sequencer.registry.describe()}


@app.get("/health")
async def health():
    return {"status": "ok"}
