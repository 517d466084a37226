from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError
from starlette.exceptions import HTTPException as StarletteHTTPException

from maintenance_api.core.deps import resolve_caller
from maintenance_api.core.logging import configure_logging, correlation_id_var, user_id_var
from maintenance_api.core.security import decode_token
from maintenance_api.core.settings import get_app_settings
from maintenance_api.db.run_migrations import main as run_alembic
from maintenance_api.db.seed import seed_all
from maintenance_api.db.session import get_session_maker
from maintenance_api.repositories.configuration import ConfigurationRepository
from maintenance_api.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from maintenance_api.schemas.realtime import WsEnvelope
from maintenance_api.services.errors import ServiceError
from maintenance_api.services.notifications import notification_engine
from maintenance_api.services.realtime import broadcast_manager
from maintenance_api.services.system_settings import settings_store

# Routers
from maintenance_api.api.routes.assets import router as assets_router
from maintenance_api.api.routes.audit import router as audit_router
from maintenance_api.api.routes.auth import router as auth_router
from maintenance_api.api.routes.dashboard import router as dashboard_router
from maintenance_api.api.routes.functions import FunctionError, function_error_response
from maintenance_api.api.routes.functions import router as functions_router
from maintenance_api.api.routes.inventory import router as inventory_router
from maintenance_api.api.routes.notifications import router as notifications_router
from maintenance_api.api.routes.organization import router as organization_router
from maintenance_api.api.routes.profiles import router as profiles_router
from maintenance_api.api.routes.reports import router as reports_router
from maintenance_api.api.routes.settings import router as settings_router
from maintenance_api.api.routes.tickets import router as tickets_router

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

FUNCTIONS_PREFIX = "/functions/v1"

openapi_tags = [
    {"name": "Health", "description": "Liveness check."},
    {"name": "Auth", "description": "Login, token refresh and the caller's session info."},
    {"name": "Admin Functions", "description": "Privileged account management (admins only)."},
    {"name": "Organization", "description": "Sectors, areas, brands and branches."},
    {"name": "Profiles", "description": "Staff profiles and technicians."},
    {"name": "Tickets", "description": "Maintenance tickets, workflow and comments."},
    {"name": "Assets", "description": "Maintained equipment and fault categories."},
    {"name": "Inventory", "description": "Spare parts, stock movements and transactions."},
    {"name": "Settings", "description": "System settings, permissions, templates and forms."},
    {"name": "Notifications", "description": "Push notifications to connected clients."},
    {"name": "Dashboard", "description": "Ticket statistics."},
    {"name": "Reports", "description": "Exportable reports (Excel/CSV/PDF)."},
    {"name": "Audit", "description": "User activity log."},
    {"name": "WebSocket", "description": "WebSocket usage and connection details."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Bind a correlation id to the request for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    token_user = user_id_var.set(None)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        user_id_var.reset(token_user)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        user_id=user_id_var.get(),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    headers = {"X-Correlation-ID": err.correlation_id} if err.correlation_id else None
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"), headers=headers)


def _is_function_path(request: Request) -> bool:
    return request.url.path.startswith(FUNCTIONS_PREFIX)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    if _is_function_path(request):
        return JSONResponse(status_code=exc.status_code, content={"error": str(detail)})
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    Admin functions answer 400 {"error": ...} instead.
    """
    if _is_function_path(request):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
        return JSONResponse(status_code=400, content={"error": message})
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=jsonable_encoder(exc.errors()),
    )


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Map domain errors raised by services to their HTTP status."""
    if _is_function_path(request):
        return JSONResponse(status_code=400, content={"error": exc.message})
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(FunctionError)
async def function_exception_handler(request: Request, exc: FunctionError):
    return function_error_response(exc)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    if _is_function_path(request):
        return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup, then warm the
    settings and notification template caches.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            run_alembic(["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Keep serving; readiness is decided by later requests.

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)

    if settings.RUN_MIGRATIONS_ON_STARTUP or settings.AUTO_SEED:
        try:
            async with get_session_maker()() as session:
                repo = ConfigurationRepository(session)
                await settings_store.ensure_loaded(repo)
                await notification_engine.sync_templates(repo)
        except Exception:
            logger.exception("Failed to warm settings caches; built-in defaults stay in effect")


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/websocket-info",
    response_model=Dict[str, Any],
    summary="WebSocket Usage Information",
    description="Connection details for the notifications WebSocket.",
    tags=["WebSocket"],
)
def websocket_info() -> Dict[str, Any]:
    """Describe how to connect to the notifications WebSocket."""
    return {
        "usage": (
            "Connect with a valid access token as the 'token' query parameter. The server pushes "
            "JSON envelopes { type, payload, at, user_id?, channel? }; send 'ping' to receive 'pong'."
        ),
        "endpoints": [
            {
                "path": "/ws/notifications",
                "summary": "Push notifications for the caller and the caller's role.",
                "query": ["token"],
                "messages": {"server_to_client": ["push"], "client_to_server": ["ping"]},
            }
        ],
        "notes": "WebSocket endpoints are not represented in OpenAPI schema; refer to this endpoint for usage.",
    }


# Include all routers under /api/v1
api_v1.include_router(auth_router)
api_v1.include_router(organization_router)
api_v1.include_router(profiles_router)
api_v1.include_router(tickets_router)
api_v1.include_router(assets_router)
api_v1.include_router(inventory_router)
api_v1.include_router(settings_router)
api_v1.include_router(notifications_router)
api_v1.include_router(dashboard_router)
api_v1.include_router(reports_router)
api_v1.include_router(audit_router)

app.include_router(api_v1)
# Admin functions keep their own path contract
app.include_router(functions_router)


async def _authenticate_ws(websocket: WebSocket):
    """
    Resolve the connecting user from the 'token' query parameter.

    Closes the socket with 4401 (bad token) or 4403 (unknown/inactive profile)
    and raises WebSocketDisconnect on failure.
    """
    token = websocket.query_params.get("token")
    try:
        claims = decode_token(token) if token else None
    except JWTError:
        claims = None
    if not claims or claims.get("type") != "access" or not claims.get("sub"):
        await websocket.close(code=4401)
        raise WebSocketDisconnect(code=4401)

    try:
        async with get_session_maker()() as session:
            return await resolve_caller(session, claims)
    except StarletteHTTPException as exc:
        code = 4401 if exc.status_code == 401 else 4403
        await websocket.close(code=code)
        raise WebSocketDisconnect(code=code)


# PUBLIC_INTERFACE
@app.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket):
    """
    WebSocket endpoint delivering push notifications.

    Security:
      - Query param 'token' must be a valid access JWT of an active profile.
    Messages:
      - Server -> Client: type='push' payload={title, body, url}
      - Client -> Server: optional 'ping' keepalive; other messages ignored.
    """
    await websocket.accept()
    try:
        user = await _authenticate_ws(websocket)
    except WebSocketDisconnect:
        return

    topics = [broadcast_manager.user_topic(user.user_id), broadcast_manager.role_topic(user.role)]
    for topic in topics:
        await broadcast_manager.connect(topic, websocket)

    await websocket.send_json(
        WsEnvelope(type="connected", payload={"role": user.role}, user_id=user.user_id).model_dump(mode="json")
    )

    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Error on ws_notifications connection")
        await websocket.close()
    finally:
        for topic in topics:
            await broadcast_manager.disconnect(topic, websocket)
