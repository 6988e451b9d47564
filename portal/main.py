"""Mural Portal - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ServerSelectionTimeoutError
from starlette.datastructures import State

from portal.api import activities, auth, chat, settings as settings_api
from portal.config import Settings, settings
from portal.exceptions import (
    ActivityNotFound,
    ActivityValidationError,
    ChatBusy,
    InitializationFailure,
    StoreUnavailable,
)
from portal.services.blobs import BlobStore, FileBlobStore
from portal.services.chat import ChatSessionManager
from portal.services.chat_history import ChatHistoryStore
from portal.services.feed import ActivityFeed
from portal.services.gemini import ChatClient, build_chat_client
from portal.stores import ActivityStore, build_activity_store, build_ai_config_store

logger = logging.getLogger(__name__)


def build_services(
    state: State,
    config: Settings,
    *,
    blobs: Optional[BlobStore] = None,
    store: Optional[ActivityStore] = None,
    client: Optional[ChatClient] = None,
) -> None:
    """Wire store, feed, tutor settings and chat session onto `app.state`."""
    blobs = blobs or FileBlobStore(config.data_dir)
    state.store = store or build_activity_store(config, blobs)
    state.feed = ActivityFeed(state.store)
    state.ai_config_store = build_ai_config_store(config, blobs)
    state.chat = ChatSessionManager(
        feed=state.feed,
        ai_config_store=state.ai_config_store,
        client=client or build_chat_client(config),
        history=ChatHistoryStore(blobs),
        model=config.gemini_model,
        persona=config.tutor_persona,
        context_placement=config.context_placement,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.activity_backend == "mongo":
        from portal.db import db_startup

        try:
            await db_startup()
        except ServerSelectionTimeoutError as e:
            logger.error("MongoDB is not reachable. Check MONGODB_URL and network access for this host.")
            raise RuntimeError("MongoDB connection failed.") from e
    build_services(app.state, settings)
    try:
        await app.state.chat.initialize()
    except InitializationFailure as e:
        logger.warning(f"Tutor not initialized at startup; it will retry on first message: {e}")
    yield
    await app.state.store.close()
    if settings.activity_backend == "mongo":
        from portal.db import db_shutdown

        await db_shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Class activity board and AI tutor grounded in the board",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": errors},
    )


@app.exception_handler(ActivityValidationError)
async def activity_validation_handler(request: Request, exc: ActivityValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(ActivityNotFound)
async def activity_not_found_handler(request: Request, exc: ActivityNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Activity not found"})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.exception_handler(ChatBusy)
async def chat_busy_handler(request: Request, exc: ChatBusy):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(InitializationFailure)
async def chat_init_failure_handler(request: Request, exc: InitializationFailure):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Could not initialize the tutor. Try again in a moment.", "error": str(exc)},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(activities.router, prefix="/api/activities", tags=["Activities"])
app.include_router(settings_api.router, prefix="/api/settings", tags=["Settings"])
app.include_router(chat.router, prefix="/api/chat", tags=["Tutor Chat"])


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name, "backend": settings.activity_backend}
