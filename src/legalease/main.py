import json
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .conversation import ConversationStageMachine, IntakeChatService
from .services.emotion import EmotionGateway
from .services.generation import GenerationGateway
from .services.session_store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    build_session_store_async,
)
from .settings import get_settings

DEFAULT_SESSION_ID = "default"


def setup_server_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``legalease`` logger tree and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("legalease")
    logger = logging.getLogger("legalease.server")
    if root.handlers:
        return logger

    root.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    return logger


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


settings = get_settings()
LOGGER = setup_server_logging(settings.log_level)


def build_chat_service(store: SessionStore) -> IntakeChatService:
    return IntakeChatService(
        store=store,
        machine=ConversationStageMachine(GenerationGateway()),
        emotions=EmotionGateway(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Pick the session store (Redis when configured) and build the chat service."""
    store = await build_session_store_async()
    app.state.chat_service = build_chat_service(store)
    LOGGER.info("%s intake service ready", settings.assistant_name)

    yield

    LOGGER.info("Shutting down...")
    if isinstance(store, RedisSessionStore):
        await store.close()


app = FastAPI(
    title="LegalEase Intake",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_chat_service(request: Request) -> IntakeChatService:
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        # Lifespan did not run (e.g. mounted inside another app).
        service = build_chat_service(InMemorySessionStore())
        request.app.state.chat_service = service
    return service


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


@app.post("/chat")
async def chat(
    request: Request,
    service: IntakeChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Handle one intake chat message.

    Expected Input (JSON):
        {
            "message": str - user message text (required),
            "sessionId": str - conversation identifier (default "default")
        }

    Response Format:
        200 {"reply": str, "emotion": str, "legalSummary"?: str}
        400 {"error": "Message required"}
        503 {"reply": str, "emotion": str, "error": "generation_unavailable" | "session_unavailable"}
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        LOGGER.warning("Invalid chat payload (not JSON): %s", e)
        payload = None
    if not isinstance(payload, dict):
        payload = {}

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        return JSONResponse(status_code=400, content={"error": "Message required"})

    session_id = str(payload.get("sessionId") or DEFAULT_SESSION_ID)
    LOGGER.info("Chat message session_id=%s", session_id)

    result = await service.handle_message(session_id, message)
    status_code = 503 if result.error else 200
    return JSONResponse(status_code=status_code, content=result.to_payload())


if settings.static_dir is not None and settings.static_dir.is_dir():
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


def run() -> None:
    """Serve the app with uvicorn using host/port from settings."""
    import uvicorn

    uvicorn.run("legalease.main:app", host=settings.host, port=settings.port)
