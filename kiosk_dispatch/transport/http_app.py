# kiosk_dispatch/transport/http_app.py
"""
HTTP + WebSocket surface of the kiosk dispatch service.

Public endpoints:
- POST /start-call       kiosk asks for help (rings the staff line)
- POST /call-response    staff accepts/declines a call (first one wins)
- GET  /logs             newest-first call history
- POST /voice            TwiML fetched by Twilio when the call connects
- POST /register-token   staff device registers for push notifications
- POST /unregister-token
- WS   /ws/staff         real-time staff event stream

Operational endpoints: GET /, GET /health, GET /metrics
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from kiosk_dispatch.config import settings
from kiosk_dispatch.core.call_log import CallLog
from kiosk_dispatch.core.connection_registry import ConnectionRegistry
from kiosk_dispatch.core.coordinator import (
    MISSING_RESPONSE_FIELDS_MESSAGE,
    MISSING_TO_MESSAGE,
    DispatchCoordinator,
)
from kiosk_dispatch.core.errors import DispatchError, ValidationError
from kiosk_dispatch.core.resolution_tracker import CallResolutionTracker
from kiosk_dispatch.infra.http_client import close_all_sessions
from kiosk_dispatch.infra.json_store import build_store
from kiosk_dispatch.infra.logging_config import get_logger, setup_logging
from kiosk_dispatch.infra.metrics import get_metrics_collector
from kiosk_dispatch.infra.push_notifiers import get_push_notifier
from kiosk_dispatch.infra.push_tokens import PushTokenRegistry
from kiosk_dispatch.infra.voice_provider import TwilioVoiceProvider, render_voice_prompt
from kiosk_dispatch.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from kiosk_dispatch.transport.schemas import CallResponseIn, PushTokenIn, StartCallIn
from kiosk_dispatch.transport.security import require_metrics_auth, sanitize_error_message
from kiosk_dispatch.transport.staff_socket import staff_socket_handler

setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)

LIVENESS_TEXT = "Kiosk dispatch server with WebSocket staff channel + push notifications is running."


# ============================================================================
# COMPOSITION
# ============================================================================

def build_push_tokens() -> PushTokenRegistry:
    return PushTokenRegistry(
        build_store(settings.storage_backend, settings.push_tokens_path, "push_tokens")
    )


def build_coordinator(push_tokens: PushTokenRegistry) -> DispatchCoordinator:
    """Wire the coordinator from settings."""
    call_log = CallLog(
        build_store(settings.storage_backend, settings.call_log_path, "call_logs"),
        max_entries=settings.call_log_max_entries,
        default_source=settings.kiosk_source,
    )
    return DispatchCoordinator(
        registry=ConnectionRegistry(send_timeout=settings.broadcast_send_timeout),
        tracker=CallResolutionTracker(),
        call_log=call_log,
        voice=TwilioVoiceProvider(),
        push=get_push_notifier(push_tokens),
        source=settings.kiosk_source,
        callback_url=settings.voice_callback_url,
    )


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_coordinator(request: Request) -> DispatchCoordinator:
    return request.app.state.coordinator


def get_push_tokens(request: Request) -> PushTokenRegistry:
    return request.app.state.push_tokens


async def read_payload(request: Request) -> dict[str, Any]:
    """
    Request body as a dict. Accepts JSON or form-encoded bodies; an empty
    or unparsable body yields an empty dict so field validation reports it.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            form = await request.form()
            return dict(form)
        body = await request.body()
        if not body.strip():
            return {}
        payload = await request.json()
    except Exception as exc:
        logger.warning(f"Unparsable request body: {type(exc).__name__}")
        return {}
    return payload if isinstance(payload, dict) else {}


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_body(model: type[ModelT], payload: dict[str, Any], message: str) -> ModelT:
    """Validate ``payload`` against ``model``; any field error becomes a 400 with ``message``."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        logger.info(f"Rejected {model.__name__} body: {exc.error_count()} invalid field(s)")
        raise ValidationError(message) from exc


def parse_token(payload: dict[str, Any]) -> str | None:
    try:
        return PushTokenIn.model_validate(payload).token
    except PydanticValidationError:
        return None


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(
    coordinator: DispatchCoordinator | None = None,
    push_tokens: PushTokenRegistry | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    ``coordinator`` / ``push_tokens`` are built from settings at startup
    unless provided (tests inject fakes this way).
    """

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        logger.info(f"Starting application: env={settings.app_env}")

        tokens = push_tokens or build_push_tokens()
        fastapi_app.state.push_tokens = tokens
        fastapi_app.state.coordinator = coordinator or build_coordinator(tokens)

        logger.info(
            f"Call log: backend={settings.storage_backend}, "
            f"max_entries={settings.call_log_max_entries}; push={settings.push_provider}"
        )
        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application")
        await fastapi_app.state.coordinator.drain()
        await close_all_sessions()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Kiosk Dispatch",
        description="Real-time staff dispatch for kiosk support calls",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    if settings.is_production or settings.is_staging:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins if settings.allowed_origins != ["*"] else [],
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "Authorization"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
    app.add_middleware(RequestIDMiddleware)

    # ------------------------------------------------------------------------
    # EXCEPTION HANDLERS
    # ------------------------------------------------------------------------

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError):
        if exc.status_code >= 500:
            logger.error(f"Dispatch error: {exc.message}", extra={"status_code": exc.status_code})
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": sanitize_error_message(exc, settings.is_production)},
        )

    # ------------------------------------------------------------------------
    # CALL DISPATCH
    # ------------------------------------------------------------------------

    @app.post("/start-call")
    async def start_call(
        request: Request,
        coordinator: DispatchCoordinator = Depends(get_coordinator),
    ):
        body = parse_body(StartCallIn, await read_payload(request), MISSING_TO_MESSAGE)
        sid = await coordinator.place_call(body.to)
        return {"message": "Call initiated", "sid": sid}

    @app.post("/call-response")
    async def call_response(
        request: Request,
        coordinator: DispatchCoordinator = Depends(get_coordinator),
    ):
        body = parse_body(CallResponseIn, await read_payload(request), MISSING_RESPONSE_FIELDS_MESSAGE)
        await coordinator.on_call_response(body.sid, body.accepted)
        return {"message": "Response logged"}

    @app.get("/logs")
    async def logs(coordinator: DispatchCoordinator = Depends(get_coordinator)):
        return await coordinator.list_logs()

    @app.post("/voice")
    async def voice():
        """TwiML instructions for Twilio once the staff phone picks up."""
        return Response(content=render_voice_prompt(settings.voice_prompt), media_type="text/xml")

    @app.websocket("/ws/staff")
    async def staff_socket(websocket: WebSocket):
        await staff_socket_handler(websocket, websocket.app.state.coordinator.registry)

    # ------------------------------------------------------------------------
    # PUSH TOKENS
    # ------------------------------------------------------------------------

    @app.post("/register-token")
    async def register_token(
        request: Request,
        tokens: PushTokenRegistry = Depends(get_push_tokens),
    ):
        added = await tokens.register(parse_token(await read_payload(request)))
        return {"message": "Token registered" if added else "Token already registered or empty"}

    @app.post("/unregister-token")
    async def unregister_token(
        request: Request,
        tokens: PushTokenRegistry = Depends(get_push_tokens),
    ):
        removed = await tokens.unregister(parse_token(await read_payload(request)))
        return {"message": "Token unregistered" if removed else "Token not registered"}

    # ------------------------------------------------------------------------
    # OPERATIONAL
    # ------------------------------------------------------------------------

    @app.get("/", include_in_schema=False)
    def root_public():
        return PlainTextResponse(LIVENESS_TEXT)

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    @app.get("/metrics", dependencies=[Depends(require_metrics_auth)])
    def metrics():
        return get_metrics_collector().get_metrics()

    return app


app = create_app()
