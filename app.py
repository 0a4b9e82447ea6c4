"""
Brain Chat FastAPI Application

A REST API server for conversing with an AI assistant grounded in a user's
captures and collections.
Provides endpoints for brain chat sessions (/brain-chat) and static-context
conversations (/brain-ai), with server-sent event streaming.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from brainchat.config import Config
from brainchat.core.factory import (
    DocumentStoreFactory,
    EmbedderFactory,
    LLMFactory,
    VectorStoreFactory,
)
from brainchat.models import (
    BrainChatContext,
    ContextFilters,
    ContextItem,
    ContextType,
    ConversationDetail,
    ConversationStartRequest,
    ConversationSummary,
    Message,
    SessionDetail,
)
from brainchat.services.brain_chat import BrainChatService, ChatReply
from brainchat.utils.cancellation import REASON_DISCONNECT, CancellationToken
from brainchat.utils.exceptions import AuthorizationError, BrainChatError
from brainchat.utils.logger import get_logger, setup_logging

# Global service instance
service: BrainChatService | None = None
config: Config = Config()
logger = get_logger(__name__)

DISCONNECT_POLL_SECONDS = 0.5
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# Pydantic models for API
class BrainChatMessageRequest(BaseModel):
    """Request model for a brain chat turn."""

    session_id: str | None = Field(default=None, description="Existing session to continue")
    context_type: ContextType = Field(..., description="Selection policy")
    context_items: list[ContextItem] = Field(default_factory=list)
    message: str = Field(..., description="User message")
    stream: bool = Field(default=False, description="Stream the reply as server-sent events")
    filters: ContextFilters | None = None


class UpdateTitleRequest(BaseModel):
    """Request model for renaming a session."""

    title: str = Field(..., description="New title (1-200 characters)")


class StartConversationRequest(BaseModel):
    """Request model for opening a static-context conversation."""

    title: str | None = None
    created_at: datetime | None = None
    context: BrainChatContext = Field(default_factory=BrainChatContext)
    messages: list[Message] = Field(default_factory=list)
    stream: bool = Field(default=False)


class ConversationMessageRequest(BaseModel):
    """Request model for a new conversation turn."""

    content: str = Field(..., description="User message")


class IndexCaptureResponse(BaseModel):
    """Response model for capture indexing."""

    capture_id: str
    chunks: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service_initialized: bool
    llm: str
    embedding_model: str
    vector_store: str
    document_store: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global service, config

    # Load configuration from environment or use defaults
    config = Config.from_env()

    # Initialize logging with config
    setup_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir,
        file_rotation=config.logging.file_rotation,
        file_retention=config.logging.file_retention,
        compression=config.logging.compression,
        serialize=config.logging.serialize,
    )

    logger.info("Starting Brain Chat server")
    logger.info(
        f"Configuration: LLM={config.llm.provider}/{config.llm.model}, "
        f"Embedder={config.embedder.provider}/{config.embedder.model}, "
        f"Storage={config.storage.backend}"
    )

    # Create components using factories
    logger.info("Creating LLM provider")
    llm = LLMFactory.create(config.llm)

    logger.info("Creating embedder")
    embedder = EmbedderFactory.create(config.embedder)

    logger.info("Creating document store")
    document_store = DocumentStoreFactory.create(config.storage)

    logger.info("Detecting embedding dimension")
    vector_size = await EmbedderFactory.get_dimension(embedder, config.embedder)
    logger.info(f"Embedding dimension: {vector_size}")

    logger.info("Creating vector store")
    vector_store = VectorStoreFactory.create(config.qdrant, vector_size)

    # Create and initialize service
    service = BrainChatService(
        llm=llm,
        embedder=embedder,
        vector_store=vector_store,
        document_store=document_store,
        config=config,
    )

    await service.initialize()
    logger.info("Brain Chat service initialized")

    yield

    # Cleanup
    logger.info("Shutting down Brain Chat server")
    await service.close()
    service = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="Brain Chat API",
    description="Conversational AI over captures and collections",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers
@app.exception_handler(BrainChatError)
async def brain_chat_error_handler(request: Request, exc: BrainChatError):
    if exc.status_code >= 500:
        logger.bind(path=request.url.path, code=exc.code, **exc.context).error(
            f"Request failed: {exc.message}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "code": "INVALID_REQUEST",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


# Dependencies
def get_service() -> BrainChatService:
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


def get_config() -> Config:
    return config


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity; authentication happens upstream."""
    if not x_user_id or not x_user_id.strip():
        raise AuthorizationError("User not authenticated")
    return x_user_id.strip()


def new_cancel_token(app_config: Config) -> CancellationToken:
    token = CancellationToken()
    token.cancel_after(app_config.chat.request_timeout)
    return token


async def event_stream(
    events: AsyncIterator[dict[str, Any]], request: Request, token: CancellationToken
) -> AsyncIterator[str]:
    """Frame events as SSE and cancel generation when the client goes away."""

    async def watch_disconnect():
        while not token.cancelled:
            if await request.is_disconnected():
                token.cancel(REASON_DISCONNECT)
                return
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(watch_disconnect())
    try:
        async for event in events:
            yield f"data: {json.dumps(event)}\n\n"
    finally:
        watcher.cancel()
        token.close()


def sse_response(
    events: AsyncIterator[dict[str, Any]], request: Request, token: CancellationToken
) -> StreamingResponse:
    return StreamingResponse(
        event_stream(events, request, token),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy" if service else "initializing",
        service_initialized=service is not None,
        llm=f"{config.llm.provider}/{config.llm.model}",
        embedding_model=f"{config.embedder.provider}/{config.embedder.model}",
        vector_store=f"Qdrant ({config.qdrant.url})",
        document_store=f"{config.storage.backend} ({config.storage.db_path})",
    )


# Brain chat session endpoints
@app.post("/brain-chat/message", response_model=ChatReply)
async def process_message(
    body: BrainChatMessageRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
    app_config: Config = Depends(get_config),
):
    """
    Send a message to a brain chat session.

    The reply is grounded in the captures selected by `context_type`:
    - all: every active capture
    - collection: members of the given collections
    - bookmarks: bookmarked captures
    - specific: the given captures
    - mixed: collections and captures together

    A new session is created when `session_id` is absent or unknown. With
    `stream=true` the reply is sent as server-sent events.
    """
    token = new_cancel_token(app_config)
    kwargs = {
        "user_id": user_id,
        "message": body.message,
        "context_type": body.context_type,
        "context_items": body.context_items,
        "session_id": body.session_id,
        "filters": body.filters,
        "cancel_token": token,
    }

    if body.stream:
        try:
            events = await chat.stream_message(**kwargs)
        except Exception:
            token.close()
            raise
        return sse_response(events, request, token)

    try:
        return await chat.process_message(**kwargs)
    finally:
        token.close()


@app.get("/brain-chat/sessions", response_model=list[SessionDetail])
async def list_sessions(
    limit: int = Query(default=20, ge=1),
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """List the caller's sessions, most recently active first (at most 50)."""
    sessions = await chat.list_sessions(user_id, limit)
    return [SessionDetail.from_conversation(session) for session in sessions]


@app.get("/brain-chat/sessions/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """Retrieve a session with its selection and messages."""
    return SessionDetail.from_conversation(await chat.get_session(session_id, user_id))


@app.delete("/brain-chat/sessions/{session_id}")
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """Delete a session."""
    await chat.delete_session(session_id, user_id)
    return {"id": session_id, "deleted": True}


@app.patch("/brain-chat/sessions/{session_id}/title", response_model=SessionDetail)
async def update_session_title(
    session_id: str,
    body: UpdateTitleRequest,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """Rename a session. The title is trimmed and must be 1-200 characters."""
    session = await chat.update_session_title(session_id, user_id, body.title)
    return SessionDetail.from_conversation(session)


@app.post("/brain-chat/sessions/{session_id}/archive", response_model=SessionDetail)
async def archive_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """Mark a session inactive. Archived sessions stay listed and readable."""
    session = await chat.archive_session(session_id, user_id)
    return SessionDetail.from_conversation(session)


@app.post("/brain-chat/captures/{capture_id}/index", response_model=IndexCaptureResponse)
async def index_capture(
    capture_id: str,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """(Re)index a capture's content for similarity retrieval."""
    chunks = await chat.index_capture(capture_id, user_id)
    return IndexCaptureResponse(capture_id=capture_id, chunks=chunks)


# Brain AI conversation endpoints
@app.post("/brain-ai/conversation/start")
async def start_conversation(
    body: StartConversationRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
    app_config: Config = Depends(get_config),
):
    """
    Open a conversation over a static context and answer its initial messages.

    With `stream=true` the reply is sent as server-sent events and the
    conversation is saved once the reply completes.
    """
    start = ConversationStartRequest.model_validate(body.model_dump(exclude={"stream"}))
    token = new_cancel_token(app_config)

    if body.stream:
        try:
            events = chat.start_conversation_stream(user_id, start, token)
        except Exception:
            token.close()
            raise
        return sse_response(events, request, token)

    try:
        conversation = await chat.start_conversation(user_id, start, token)
    finally:
        token.close()
    return ConversationDetail.from_conversation(conversation)


@app.post("/brain-ai/conversation/{conversation_id}/message")
async def send_conversation_message(
    conversation_id: str,
    body: ConversationMessageRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
    app_config: Config = Depends(get_config),
):
    """Send a message to a conversation; the reply is streamed as server-sent events."""
    token = new_cancel_token(app_config)
    try:
        events = await chat.send_conversation_message(
            conversation_id, user_id, body.content, token
        )
    except Exception:
        token.close()
        raise
    return sse_response(events, request, token)


@app.get("/brain-ai/conversations", response_model=list[ConversationSummary])
async def list_conversations(
    limit: int = Query(default=20, ge=1),
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """List the caller's conversations without message bodies."""
    return await chat.list_conversations(user_id, limit)


@app.get("/brain-ai/conversation/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """Retrieve a conversation with its messages."""
    conversation = await chat.get_conversation(conversation_id, user_id)
    return ConversationDetail.from_conversation(conversation)


@app.delete("/brain-ai/conversation/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    chat: BrainChatService = Depends(get_service),
):
    """Delete a conversation."""
    await chat.delete_conversation(conversation_id, user_id)
    return {"id": conversation_id, "deleted": True}


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Brain Chat API",
        "version": "1.0.0",
        "description": "Conversational AI over captures and collections",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
