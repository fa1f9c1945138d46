"""FastAPI application exposing user, role, device and diagnostic endpoints."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from .auth import get_caller, get_optional_caller
from .config import settings
from .database import get_db, init_db
from .directory import (
    DeviceDirectory,
    DeviceSearch,
    DiagnosticPointDirectory,
    RoleDirectory,
    RoleSearch,
    UserDirectory,
    UserSearch,
)
from .errors import STATUS_BY_KIND, DirectoryError
from .schemas import (
    DeviceCreate,
    DeviceView,
    DiagnosticPointCreate,
    DiagnosticPointView,
    LoginRequest,
    MessageResponse,
    RoleCreate,
    RoleView,
    TokenResponse,
    UserCreate,
    UserUpdate,
    UserView,
)
from .security import Caller, create_access_token, create_refresh_token


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.getLogger("viking").setLevel(settings.log_level)
    init_db()
    yield


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
app = FastAPI(title=settings.api_title, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


@app.exception_handler(DirectoryError)
async def directory_error_handler(request: Request, exc: DirectoryError):
    """Map a directory failure onto its HTTP status."""
    status_code = STATUS_BY_KIND[exc.kind]
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed query or path parameters are client errors (400).

    Body validation keeps FastAPI's 422 response.
    """
    for error in exc.errors():
        loc = error.get("loc", ())
        if loc and loc[0] in ("query", "path"):
            return JSONResponse(
                status_code=400,
                content={"detail": f"Invalid value for '{loc[-1]}' parameter: {error.get('msg')}"},
            )
    return await request_validation_exception_handler(request, exc)


def get_user_directory(db: Session = Depends(get_db)) -> UserDirectory:
    return UserDirectory(db)


def get_role_directory(db: Session = Depends(get_db)) -> RoleDirectory:
    return RoleDirectory(db)


def get_device_directory(db: Session = Depends(get_db)) -> DeviceDirectory:
    return DeviceDirectory(db)


def get_diagnostic_point_directory(db: Session = Depends(get_db)) -> DiagnosticPointDirectory:
    return DiagnosticPointDirectory(db)


# -- auth -------------------------------------------------------------------


@app.post("/api/auth/login", response_model=TokenResponse)
@limiter.limit(settings.sensitive_rate_limit)
def login(
    request: Request,
    payload: LoginRequest,
    directory: UserDirectory = Depends(get_user_directory),
):
    user = directory.authenticate(payload.email, payload.password)
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )


# -- users ------------------------------------------------------------------


@app.get(
    "/api/user/search",
    response_model=Union[List[UserView], UserView],
    dependencies=[Depends(get_caller)],
)
def search_users(
    query: Optional[str] = None,
    id: Optional[uuid.UUID] = None,
    dni: Optional[int] = None,
    email: Optional[str] = None,
    cuit: Optional[str] = None,
    role_id: Optional[uuid.UUID] = Query(None, alias="roleId"),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Look users up by the variant selected with ``query``."""
    return directory.search(
        UserSearch(query=query, id=id, dni=dni, email=email, cuit=cuit, role_id=role_id)
    )


@app.post("/api/user/save", response_model=MessageResponse)
@limiter.limit(settings.sensitive_rate_limit)
def save_user(
    request: Request,
    payload: UserCreate,
    caller: Optional[Caller] = Depends(get_optional_caller),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Register a new customer or staff member.

    Open to anonymous callers, except that the admin role needs an admin token.
    """
    user = directory.create(payload, caller)
    return MessageResponse(message="User created successfully", id=user.id)


@app.put("/api/user/update/{user_id}", response_model=UserView)
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    caller: Caller = Depends(get_caller),
    directory: UserDirectory = Depends(get_user_directory),
):
    return directory.update(caller, user_id, payload)


@app.delete("/api/user/delete/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    directory: UserDirectory = Depends(get_user_directory),
):
    if not directory.delete(caller, user_id):
        return JSONResponse(status_code=500, content={"detail": "Error deleting user"})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -- roles ------------------------------------------------------------------


@app.get(
    "/api/role/search",
    response_model=Union[List[RoleView], RoleView],
    dependencies=[Depends(get_caller)],
)
def search_roles(
    query: Optional[str] = None,
    id: Optional[uuid.UUID] = None,
    directory: RoleDirectory = Depends(get_role_directory),
):
    return directory.search(RoleSearch(query=query, id=id))


@app.post("/api/role/save", response_model=RoleView)
def save_role(
    payload: RoleCreate,
    caller: Caller = Depends(get_caller),
    directory: RoleDirectory = Depends(get_role_directory),
):
    return directory.create(caller, payload)


# -- devices ----------------------------------------------------------------


@app.get(
    "/device/search",
    response_model=Union[List[DeviceView], DeviceView],
    dependencies=[Depends(get_caller)],
)
def search_devices(
    query: Optional[str] = None,
    id: Optional[int] = None,
    serial_number: Optional[str] = Query(None, alias="serialNumber"),
    brand: Optional[str] = None,
    directory: DeviceDirectory = Depends(get_device_directory),
):
    """Look devices up by the variant selected with ``query``."""
    return directory.search(
        DeviceSearch(query=query, id=id, serial_number=serial_number, brand=brand)
    )


@app.post("/device/save", response_model=DeviceView, dependencies=[Depends(get_caller)])
def save_device(
    payload: DeviceCreate,
    directory: DeviceDirectory = Depends(get_device_directory),
):
    return directory.create(payload)


# -- diagnostic points ------------------------------------------------------


@app.get(
    "/api/diagnostic-point/search",
    response_model=List[DiagnosticPointView],
    dependencies=[Depends(get_caller)],
)
def search_diagnostic_points(
    work_order_id: Optional[int] = Query(None, alias="workOrderId"),
    directory: DiagnosticPointDirectory = Depends(get_diagnostic_point_directory),
):
    """Return the diagnostic points recorded for a work order."""
    return directory.list_for_work_order(work_order_id)


@app.post(
    "/api/diagnostic-point/save",
    response_model=DiagnosticPointView,
    dependencies=[Depends(get_caller)],
)
def save_diagnostic_point(
    payload: DiagnosticPointCreate,
    directory: DiagnosticPointDirectory = Depends(get_diagnostic_point_directory),
):
    return directory.create(payload)
