"""
FastAPI application for Chirper.

Provides:
1. Chirp endpoints (/chirps): list, create, edit, delete
2. User registration (/users)
3. A health check

Authentication is delegated to whatever sits in front of this app; it passes
the authenticated user's id in the X-User-Id header.

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
import threading
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response, status
from pydantic import BaseModel

from event_sourced.app_context import AppContext, build_app_context
from event_sourced.job_queue import InMemoryJobQueue
from event_sourced.services.chirps import ChirpNotFoundError, NotChirpAuthorError
from shared.data_store import DuplicateEmailError
from shared.models import Chirp, ChirpDraft, User, UserDraft

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("api")


class HealthStatus(BaseModel):
    status: str
    service: str
    pending_jobs: int


# =============================================================================
# Dependencies
# =============================================================================

def get_context(request: Request) -> AppContext:
    return request.app.state.context


ContextDep = Annotated[AppContext, Depends(get_context)]


def get_current_user(
    context: ContextDep,
    x_user_id: Annotated[Optional[int], Header()] = None,
) -> User:
    """Resolve the authenticated user from the X-User-Id header."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = context.data_store.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


# =============================================================================
# Application
# =============================================================================

def _start_in_process_worker(context: AppContext) -> Optional[tuple]:
    """
    With the in-memory queue nobody else can drain the jobs, so the API
    process runs a worker thread itself.
    """
    if not isinstance(context.queue, InMemoryJobQueue):
        return None
    worker = context.build_worker(worker_name="api-worker", poll_timeout=1.0)
    thread = threading.Thread(target=worker.run_forever, name="api-worker", daemon=True)
    thread.start()
    return worker, thread


def create_app(context: Optional[AppContext] = None, run_worker: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Pre-built components (tests); built from settings at startup if None
        run_worker: Run an in-process worker when the queue is in-memory
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown."""
        owns_context = context is None
        app.state.context = context or build_app_context()
        background = _start_in_process_worker(app.state.context) if run_worker else None
        logger.info("Starting Chirper API")
        yield
        logger.info("Shutting down")
        if background:
            worker, thread = background
            worker.stop()
            thread.join(timeout=5)
        if owns_context:
            app.state.context.close()

    app = FastAPI(
        title="Chirper",
        description="Short status updates with email notifications to everyone else.",
        version="1.0.0",
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    def health_check(ctx: ContextDep):
        """Health check endpoint."""
        return HealthStatus(status="healthy", service="chirper", pending_jobs=len(ctx.queue))

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @app.post("/users", response_model=User, status_code=status.HTTP_201_CREATED, tags=["Users"])
    def register_user(draft: UserDraft, ctx: ContextDep):
        """Register a user."""
        try:
            return ctx.data_store.create_user(draft.name, draft.email)
        except DuplicateEmailError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    # -------------------------------------------------------------------------
    # Chirps
    # -------------------------------------------------------------------------

    @app.get("/chirps", response_model=list[Chirp], tags=["Chirps"])
    def list_chirps(user: CurrentUser, ctx: ContextDep):
        """All chirps, latest first."""
        return ctx.chirp_service.list_chirps()

    @app.post("/chirps", response_model=Chirp, status_code=status.HTTP_201_CREATED, tags=["Chirps"])
    def create_chirp(draft: ChirpDraft, user: CurrentUser, ctx: ContextDep):
        """
        Post a chirp as the current user.

        Every other user is emailed about it in the background; notification
        problems never affect this response.
        """
        return ctx.chirp_service.create_chirp(user.id, draft.message)

    @app.patch("/chirps/{chirp_id}", response_model=Chirp, tags=["Chirps"])
    def update_chirp(chirp_id: int, draft: ChirpDraft, user: CurrentUser, ctx: ContextDep):
        """Edit one of the current user's chirps."""
        try:
            return ctx.chirp_service.update_chirp(user.id, chirp_id, draft.message)
        except ChirpNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except NotChirpAuthorError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    @app.delete("/chirps/{chirp_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Chirps"])
    def delete_chirp(chirp_id: int, user: CurrentUser, ctx: ContextDep):
        """Delete one of the current user's chirps."""
        try:
            ctx.chirp_service.delete_chirp(user.id, chirp_id)
        except ChirpNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except NotChirpAuthorError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


app = create_app()
