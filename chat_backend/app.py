# =============================================================================
# Chat Backend Application
# -----------------------------------------------------------------------------
# FastAPI surface of the chat assistant:
# - POST   /api/chat           streamed model reply for a conversation
# - DELETE /api/chat           delete a chat and its messages
# - GET    /api/suggestions    suggestions for a document the user owns
# - POST   /api/files/upload   store a JPEG/PNG/PDF attachment
# - GET    /uploads/...        uploaded files, served statically
# =============================================================================

from contextlib import asynccontextmanager # Used to manage application startup and shutdown lifecycle
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware # Enables safe cross-origin requests from the frontend domain
from fastapi.responses import PlainTextResponse, StreamingResponse # Used for token-by-token streaming of LLM responses
from fastapi.staticfiles import StaticFiles
from loguru import logger
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from supabase import create_client

from chat_backend.auth import Session, SessionResolver, StubSessionResolver, SupabaseSessionResolver, require_session
from chat_backend.chat import ChatOrchestrator
from chat_backend.config import Settings
from chat_backend.errors import GENERIC_SERVER_ERROR, AuthorizationDenied, NotFound, ValidationFailed
from chat_backend.logging_config import setup_logging
from chat_backend.providers import ModelProvider
from chat_backend.schemas import ChatRequest
from chat_backend.store import ChatStore
from chat_backend.stream import STREAM_HEADERS
from chat_backend.tools import ToolsFactory, build_tools
from chat_backend.uploads import store_upload, validate_upload


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ChatStore] = None,
    session_resolver: Optional[SessionResolver] = None,
    models: Optional[ModelProvider] = None,
    tools_factory: ToolsFactory = build_tools,
) -> FastAPI:
    """
    Builds the application. Collaborators that are not injected are created
    from the settings at startup.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_file)

        chat_store = store
        resolver = session_resolver

        if chat_store is None or (resolver is None and settings.auth_mode == "supabase"):
            # These values are critical for the application to function.
            if not settings.supabase_url or not settings.supabase_key:
                raise RuntimeError("Missing SUPABASE_URL or SUPABASE_KEY")
            supabase = create_client(settings.supabase_url, settings.supabase_key)
            chat_store = chat_store or ChatStore(supabase)
            if resolver is None and settings.auth_mode == "supabase":
                resolver = SupabaseSessionResolver(supabase)

        app.state.settings = settings
        app.state.store = chat_store
        app.state.session_resolver = resolver or StubSessionResolver()
        app.state.orchestrator = ChatOrchestrator(
            store=chat_store,
            models=models or ModelProvider(settings),
            settings=settings,
            tools_factory=tools_factory,
        )
        logger.info(f"Chat backend started (auth={settings.auth_mode}, public_dir={settings.public_dir})")

        yield

        logger.info("Shutting down...")

    app = FastAPI(lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    # ========================================================================
    # Endpoints
    # ========================================================================

    @app.post("/api/chat")
    async def chat(request: Request, session: Session = Depends(require_session)):
        """Core conversational endpoint. Streams the reply as data-stream parts."""
        orchestrator: ChatOrchestrator = request.app.state.orchestrator

        # Parsed here so that an unauthenticated request never reaches body validation
        try:
            body = ChatRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            raise ValidationFailed("Invalid request body")

        prepared = await orchestrator.prepare(session, body)
        return StreamingResponse(
            orchestrator.stream(prepared),
            media_type="text/plain; charset=utf-8",
            headers=STREAM_HEADERS,
        )

    @app.delete("/api/chat")
    async def delete_chat(request: Request, id: Optional[str] = None):
        """Deletes a chat and its message history."""
        if not id:
            raise NotFound()

        session = require_session(request)
        chat_store: ChatStore = request.app.state.store

        try:
            chat = await run_in_threadpool(chat_store.get_chat_by_id, id)
            if chat is not None and chat.user_id != session.user.id:
                raise AuthorizationDenied()
            await run_in_threadpool(chat_store.delete_chat_by_id, id)
        except HTTPException:
            raise
        except Exception:
            logger.exception(f"Failed to delete chat {id}")
            raise HTTPException(500, detail=GENERIC_SERVER_ERROR)

        return PlainTextResponse("Chat deleted", status_code=200)

    @app.get("/api/suggestions")
    async def suggestions(request: Request, documentId: Optional[str] = None):
        """Returns suggestions for a document owned by the current user."""
        if not documentId:
            raise NotFound()

        session = require_session(request)
        chat_store: ChatStore = request.app.state.store

        documents = await run_in_threadpool(chat_store.get_documents_by_id, documentId)
        if not documents:
            raise NotFound("Document not found")

        if documents[0].user_id != session.user.id:
            raise AuthorizationDenied()

        found = await run_in_threadpool(chat_store.get_suggestions_by_document_id, documentId)
        return [s.model_dump(mode="json") for s in found]

    @app.post("/api/files/upload")
    async def upload_file(request: Request, session: Session = Depends(require_session)):
        """Stores an attachment and returns a reference usable in a [FILE: ...] marker."""
        app_settings: Settings = request.app.state.settings

        if not await request.body():
            raise ValidationFailed("Request body is empty")

        try:
            form = await request.form()
            file = form.get("file")

            if file is None or isinstance(file, str):
                raise ValidationFailed("No file uploaded")

            contents = await file.read()
            content_type = file.content_type
            errors = validate_upload(len(contents), content_type, app_settings)
            if errors:
                raise ValidationFailed(", ".join(errors))

            stored = await run_in_threadpool(store_upload, contents, file.filename, content_type, app_settings)
        except HTTPException:
            raise
        except Exception:
            logger.exception(f"Error uploading file for user {session.user.id}")
            raise HTTPException(500, detail="Failed to upload file")

        logger.info(f"Stored upload {stored.pathname} ({content_type}, {len(contents)} bytes)")
        return stored.as_dict()

    return app


app = create_app()
