"""
FastAPI credential backend for the salon voice receptionist.

The call core on the caller's side fetches one single-use credential per call
attempt from this service: a signed conversation URL for the managed
transport, or an ephemeral realtime token for the peer transport. Provider API
keys stay on the server.
"""

import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from receptionist.config import realtime_model
from receptionist.config.constants import REALTIME_SESSION_PATH, SALON_NAME, SIGNED_URL_PATH
from receptionist.config.logging_config import configure_logging
from receptionist.handlers.session_handlers import (
    CredentialIssueError,
    agent_id,
    handle_get_agent_id,
    handle_realtime_session,
    handle_signed_url,
)
from receptionist.models.message_schemas import (
    ErrorResponse,
    RealtimeSessionResponse,
    SignedUrlResponse,
)

# Configure logging
logger = configure_logging()

# Get configuration from environment variables
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")

# Create FastAPI application
app = FastAPI(
    title="Salon Voice Receptionist",
    description=f"Credential backend for the {SALON_NAME} AI receptionist",
    version="1.0.0",
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.exception_handler(CredentialIssueError)
async def credential_issue_handler(request: Request, exc: CredentialIssueError):
    return JSONResponse(status_code=500, content=ErrorResponse(error=exc.message).model_dump(exclude_none=True))


@app.get(SIGNED_URL_PATH, response_model=SignedUrlResponse)
async def signed_url():
    """Signed websocket URL for a managed-provider conversation."""
    return await handle_signed_url()


@app.post(REALTIME_SESSION_PATH, response_model=RealtimeSessionResponse)
async def realtime_session():
    """Ephemeral token for a peer (WebRTC) realtime session."""
    return await handle_realtime_session()


@app.get("/api/getAgentId")
async def get_agent_id():
    return handle_get_agent_id()


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status and which provider credentials are configured.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(os.getenv("OPENAI_API_KEY")),
        "elevenlabs_configured": bool(agent_id() and os.getenv("ELEVENLABS_API_KEY")),
        "realtime_model": realtime_model(),
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "Salon Voice Receptionist",
        "description": f"Credential backend for the {SALON_NAME} AI receptionist",
        "version": "1.0.0",
        "endpoints": {
            SIGNED_URL_PATH: "Signed URL for the managed conversational agent",
            REALTIME_SESSION_PATH: "Ephemeral token for the realtime peer session",
            "/api/getAgentId": "Configured conversational agent id",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT, http="h11")
