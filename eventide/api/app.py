"""FastAPI application exposing an EventStore over HTTP.

Routes:
    - POST /v1/events - Schedule a new event
    - POST /v1/events/search - Search events in a namespace
    - PUT /v1/events/settle - Disable or complete an event
    - PUT /v1/events/settle-and-next - Settle an event and schedule its successor
    - GET /v1/events/{namespace}/{key}/{id} - Look up a single event
    - GET /healthz - Liveness and storage connectivity
"""

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from ulid import ULID

from eventide.application import EventStore
from eventide.domain import (
    AlreadyScheduledError,
    CreateEvent,
    Event,
    EventStoreError,
    IllegalStateError,
    NoResultError,
    SearchQuery,
    SettleAndNextEvent,
    SettleEvent,
    StoreConnectionError,
)

from .schemas import ErrorResponse, HealthResponse, SearchResponse

LOGGER = logging.getLogger(__name__)

# Checked in order; the first matching class wins.
ERROR_STATUS: list[tuple[type[EventStoreError], int]] = [
    (AlreadyScheduledError, 409),
    (IllegalStateError, 409),
    (NoResultError, 404),
    (StoreConnectionError, 503),
]

router = APIRouter(prefix="/v1/events", tags=["events"])


def status_for(error: EventStoreError) -> int:
    """HTTP status code for a store failure, 500 when unclassified."""
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def get_store(request: Request) -> EventStore:
    store: EventStore = request.app.state.store
    return store


@router.post("", response_model=Event, responses={409: {"model": ErrorResponse}})
async def schedule_event(body: CreateEvent, request: Request) -> Event:
    return await get_store(request).insert(body)


@router.post("/search", response_model=SearchResponse)
async def search_events(query: SearchQuery, request: Request) -> SearchResponse:
    lower, upper = query.scheduled_range()
    # Pin the upper bound so the echoed range is the one that was searched.
    resolved = query.model_copy(update={"scheduled_at_min": lower, "scheduled_at_max": upper})
    events = await get_store(request).search(resolved)
    return SearchResponse(
        namespace=query.namespace,
        state=query.states(),
        scheduled_at_min=lower,
        scheduled_at_max=upper,
        limit=query.limit,
        events=events,
    )


@router.put(
    "/settle",
    response_model=Event,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def settle_event(body: SettleEvent, request: Request) -> Event:
    event = await get_store(request).change_state(body)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.put(
    "/settle-and-next",
    response_model=Event,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def settle_and_next(body: SettleAndNextEvent, request: Request) -> Event:
    return await get_store(request).settle_and_next(body)


@router.get("/{namespace}/{key}/{id}", response_model=Event, responses={404: {"model": ErrorResponse}})
async def get_event(namespace: str, key: str, id: ULID, request: Request) -> Event:
    event = await get_store(request).get(namespace, key, id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


async def handle_store_error(request: Request, exc: EventStoreError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        LOGGER.error(
            "Store failure",
            exc_info=exc,
            extra={"method": request.method, "path": request.url.path},
        )
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=status, content=body.model_dump())


def create_app(store: EventStore) -> FastAPI:
    """Build the HTTP application around a store.

    The store's schema is initialized when the application starts and the
    store is closed when it shuts down.

    Args:
        store: The event store every route delegates to.

    Returns:
        The configured FastAPI application.

    Examples:
        >>> app = create_app(InMemoryEventStore())
        >>> uvicorn.run(app)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.initialize_schema()
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="eventide", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.include_router(router)
    app.add_exception_handler(EventStoreError, handle_store_error)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        LOGGER.info(
            "%s %s %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"elapsed_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return response

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz() -> HealthResponse:
        return HealthResponse(ok=True, storage=await store.ping())

    return app
