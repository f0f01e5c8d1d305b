"""
Live Presenter - Presentation Control Engine service
Main entry point for the live meeting assistant.

A transcription client streams completed utterances over WebSocket; each one
is classified into a presentation action (pause/resume, new subject, bullet
points, diagram edits) and applied to the session's subject history, which is
pushed back to the client as a snapshot after every change.
"""

import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure Logfire early in startup
from src.utils.logfire_config import configure_logfire, instrument_agents
configure_logfire()

from src.clients.pydantic_ai_oracle import PydanticAIOracle
from src.clients.translation import create_translator
from src.handlers.websocket import WebSocketHandler
from src.utils.logger import setup_logger
from src.utils.session_manager import PresentationSessionManager
from config.settings import get_settings

# Initialize
logger = setup_logger(__name__)
settings = get_settings()

# Global handler instance (shared across connections)
_handler_instance = None


def get_handler() -> WebSocketHandler:
    """Get or create the global WebSocket handler instance."""
    global _handler_instance
    if _handler_instance is None:
        session_manager = PresentationSessionManager(
            adapter_factory=lambda: PydanticAIOracle(settings.ORACLE_MODEL),
            translator_factory=lambda: create_translator(settings),
            settings=settings,
        )
        _handler_instance = WebSocketHandler(session_manager, settings=settings)
    return _handler_instance


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Live Presenter API...")

    # Check if API is disabled
    if not settings.API_ENABLED:
        logger.warning("API_ENABLED is set to False - presenter service is DISABLED")
        logger.warning("WebSocket connections will be rejected")
        yield
        logger.info("Shutting down Live Presenter API (was disabled)...")
        return

    try:
        settings.validate_settings()
        logger.info("Settings validated")
    except ValueError as e:
        logger.error(f"FATAL: {str(e)}")
        raise RuntimeError("Cannot start with invalid configuration. See logs for details.")

    instrument_agents()

    handler = get_handler()
    logger.info(f"Oracle model: {settings.ORACLE_MODEL}")
    if settings.translation_enabled:
        logger.info(f"Translation: {settings.SPEAKER_LANGUAGE} -> {settings.OTHER_PARTY_LANGUAGE}")

    yield

    logger.info("Shutting down Live Presenter API...")
    await handler.session_manager.close_all()


app = FastAPI(
    title="Live Presenter API",
    version="1.0.0",
    description="Turns live meeting speech into a navigable history of slides and diagrams",
    lifespan=lifespan
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# WebSocket endpoint
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    """
    Handle WebSocket connections.

    Args:
        websocket: The WebSocket connection
        session_id: Presentation session identifier
    """
    if not settings.API_ENABLED:
        logger.warning(f"WebSocket connection rejected - API is disabled (session: {session_id})")
        await websocket.close(code=1013, reason="Service temporarily unavailable - API disabled")
        return

    if not session_id:
        logger.error("WebSocket connection attempted without session_id")
        await websocket.close(code=1008, reason="Missing required parameters")
        return

    try:
        await get_handler().handle_connection(websocket, session_id)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: session={session_id}")
    except Exception as e:
        logger.error(f"WebSocket error: session={session_id}, error={str(e)}", exc_info=True)
        if websocket.client_state.value <= 1:  # CONNECTING=0, CONNECTED=1
            await websocket.close(code=1011, reason="Server error")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy" if settings.API_ENABLED else "disabled",
        "api_enabled": settings.API_ENABLED,
        "service": "live-presenter",
        "version": "1.0.0",
        "environment": settings.APP_ENV,
        "oracle_model": settings.ORACLE_MODEL,
        "diagram_mode_enabled": settings.DIAGRAM_MODE_ENABLED,
        "translation_enabled": settings.translation_enabled,
        "active_sessions": len(get_handler().session_manager.session_ids()),
    }


@app.get("/sessions/{session_id}")
async def session_snapshot(session_id: str):
    """Current history snapshot of a live session."""
    session = get_handler().session_manager.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session.orchestrator.snapshot()


@app.get("/sessions/{session_id}/export", response_class=PlainTextResponse)
async def export_session(session_id: str):
    """Markdown export of a live session's subject history."""
    session = get_handler().session_manager.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session.orchestrator.export_markdown()


# API info endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Live Presenter API",
        "description": "Presentation Control Engine for live meetings",
        "version": "1.0.0",
        "endpoints": {
            "websocket": "/ws?session_id={session_id}",
            "health": "/health",
            "snapshot": "/sessions/{session_id}",
            "export": "/sessions/{session_id}/export",
        },
        "actions": [
            "resumePresentation", "pausePresentation", "changeSubject",
            "addSingleBulletPoint", "addMultipleBulletPoints",
            "beginDiagram", "diagramAction", "endDiagram", "noOperation",
        ],
    }


if __name__ == "__main__":
    port = int(os.getenv("PORT", str(settings.API_PORT)))
    log_level = "debug" if settings.DEBUG else "info"

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=port,
        log_level=log_level,
        reload=settings.DEBUG
    )
