from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from resource_booking.cache import SimpleTTLCache
from resource_booking.config import get_settings
from resource_booking.database import Base, engine as db_engine
from resource_booking.dependencies import (
    ensure_owner_or_admin,
    get_current_user,
    get_engine,
    is_admin,
    require_admin,
)
from resource_booking.engine import BookingEngine
from resource_booking.error_handlers import register_exception_handlers
from resource_booking.logging_middleware import add_audit_middleware
from resource_booking.models import BookingStatus, User
from resource_booking.rate_limit import apply_rate_limiter, limiter
from resource_booking.schemas import (
    AvailabilityRead,
    BookingCreate,
    BookingProcess,
    BookingRead,
    BookingReschedule,
    Envelope,
    ResourceCreate,
    ResourceRead,
    ResourceStat,
    ResourceUpdate,
    RoleUpdate,
    UserRead,
)

settings = get_settings()
stats_cache: SimpleTTLCache[List[ResourceStat]] = SimpleTTLCache(ttl=settings.stats_cache_ttl, maxsize=1)
_STATS_KEY = "utilization"


def _invalidate_stats() -> None:
    stats_cache.pop(_STATS_KEY)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=db_engine)
    yield


router = APIRouter()


# ----- Users -----
@router.get("/users", response_model=Envelope[List[UserRead]], tags=["users"])
@limiter.limit("30/minute")
def list_users(
    request: Request,
    _: User = Depends(require_admin),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    return Envelope(data=[UserRead.model_validate(user) for user in engine.list_users()])


@router.get("/users/me", response_model=Envelope[UserRead], tags=["users"])
def read_current_user(current_user: User = Depends(get_current_user)) -> Envelope:
    return Envelope(data=UserRead.model_validate(current_user))


@router.api_route("/users/{user_id}/role", methods=["PATCH", "PUT"], response_model=Envelope[UserRead], tags=["users"])
@limiter.limit("10/minute")
def update_user_role(
    request: Request,
    user_id: str,
    payload: RoleUpdate,
    _: User = Depends(require_admin),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    user = engine.update_user_role(user_id, payload.role)
    return Envelope(data=UserRead.model_validate(user))


# ----- Resources -----
@router.get("/resources", response_model=Envelope[List[ResourceRead]], tags=["resources"])
def list_resources(
    _: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    return Envelope(data=[ResourceRead.model_validate(resource) for resource in engine.list_resources()])


@router.post(
    "/resources",
    response_model=Envelope[ResourceRead],
    status_code=status.HTTP_201_CREATED,
    tags=["resources"],
)
@limiter.limit("10/minute")
def add_resource(
    request: Request,
    payload: ResourceCreate,
    _: User = Depends(require_admin),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    resource = engine.add_resource(payload)
    _invalidate_stats()
    return Envelope(data=ResourceRead.model_validate(resource))


@router.put("/resources/{resource_id}", response_model=Envelope[ResourceRead], tags=["resources"])
@limiter.limit("10/minute")
def update_resource(
    request: Request,
    resource_id: str,
    payload: ResourceUpdate,
    _: User = Depends(require_admin),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    resource = engine.update_resource(resource_id, payload)
    _invalidate_stats()
    return Envelope(data=ResourceRead.model_validate(resource))


@router.delete("/resources/{resource_id}", response_model=Envelope[bool], tags=["resources"])
@limiter.limit("10/minute")
def delete_resource(
    request: Request,
    resource_id: str,
    _: User = Depends(require_admin),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    deleted = engine.delete_resource(resource_id)
    _invalidate_stats()
    return Envelope(data=deleted)


# ----- Bookings -----
@router.get("/bookings", response_model=Envelope[List[BookingRead]], tags=["bookings"])
def list_bookings(
    resource_id: Optional[str] = Query(default=None, alias="resourceId"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    _: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    bookings = engine.list_bookings(resource_id=resource_id, user_id=user_id, status=booking_status)
    return Envelope(data=[BookingRead.model_validate(booking) for booking in bookings])


@router.get("/bookings/availability", response_model=Envelope[AvailabilityRead], tags=["bookings"])
@limiter.limit("40/minute")
def check_availability(
    request: Request,
    resource_id: str = Query(..., alias="resourceId"),
    start: datetime = Query(...),
    end: datetime = Query(...),
    _: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    available = engine.check_availability(resource_id, start, end)
    return Envelope(
        data=AvailabilityRead(resource_id=resource_id, start_time=start, end_time=end, available=available)
    )


@router.get("/bookings/{booking_id}", response_model=Envelope[BookingRead], tags=["bookings"])
def get_booking(
    booking_id: str,
    _: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    return Envelope(data=BookingRead.model_validate(engine.get_booking(booking_id)))


@router.post(
    "/bookings",
    response_model=Envelope[BookingRead],
    status_code=status.HTTP_201_CREATED,
    tags=["bookings"],
)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    payload: BookingCreate,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    user_id = payload.user_id or current_user.id
    if user_id != current_user.id and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can book on behalf of other users",
        )
    booking = engine.create_booking(
        payload.resource_id,
        user_id,
        payload.start_time,
        payload.end_time,
        payload.details,
    )
    _invalidate_stats()
    return Envelope(data=BookingRead.model_validate(booking))


@router.post("/bookings/{booking_id}/process", response_model=Envelope[BookingRead], tags=["bookings"])
@limiter.limit("20/minute")
def process_booking(
    request: Request,
    booking_id: str,
    payload: BookingProcess,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    if not is_admin(current_user):
        # Owners may only accept a time an admin proposed to them.
        booking = engine.get_booking(booking_id)
        accepting_proposal = (
            booking.user_id == current_user.id
            and booking.status == BookingStatus.PROPOSED
            and payload.status == BookingStatus.CONFIRMED
        )
        if not accepting_proposal:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    booking = engine.process_booking(booking_id, payload.status, payload.rejection_reason)
    _invalidate_stats()
    return Envelope(data=BookingRead.model_validate(booking))


@router.post("/bookings/{booking_id}/reschedule", response_model=Envelope[BookingRead], tags=["bookings"])
@limiter.limit("20/minute")
def reschedule_booking(
    request: Request,
    booking_id: str,
    payload: BookingReschedule,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    ensure_owner_or_admin(current_user, engine.get_booking(booking_id).user_id)
    booking = engine.reschedule_booking(booking_id, payload.start_time, payload.end_time)
    _invalidate_stats()
    return Envelope(data=BookingRead.model_validate(booking))


@router.delete("/bookings/{booking_id}", response_model=Envelope[bool], tags=["bookings"])
@limiter.limit("20/minute")
def cancel_booking(
    request: Request,
    booking_id: str,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    ensure_owner_or_admin(current_user, engine.get_booking(booking_id).user_id)
    engine.cancel_booking(booking_id)
    _invalidate_stats()
    return Envelope(data=True)


# ----- Stats -----
@router.get("/stats", response_model=Envelope[List[ResourceStat]], tags=["stats"])
@limiter.limit("30/minute")
def utilization_stats(
    request: Request,
    _: User = Depends(require_admin),
    engine: BookingEngine = Depends(get_engine),
) -> Envelope:
    return Envelope(data=stats_cache.get_or_compute(_STATS_KEY, engine.get_utilization_stats))


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Resource Booking Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_exception_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, settings.app_name, settings.audit_log_dir)

    @fastapi_app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    fastapi_app.include_router(router)
    fastapi_app.include_router(router, prefix="/api")

    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app, include_in_schema=False)
    return fastapi_app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
