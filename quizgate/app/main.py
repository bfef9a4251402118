from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quizgate.app.api import access_router, admin_router, rankings_router
from quizgate.app.core.config import Settings, settings as default_settings
from quizgate.app.core.http_client import init_http_client
from quizgate.app.core.logging import get_logger, setup_logging
from quizgate.app.exceptions import QuizGateException
from quizgate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from quizgate.app.middleware.request_size import RequestSizeLimitMiddleware
from quizgate.app.services.container import AppServices, build_services
from quizgate.app.services.rankings import DIMENSIONS


def create_app(
    app_settings: Optional[Settings] = None,
    services: Optional[AppServices] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones
        services: Pre-built service container (tests inject one with a
            controllable clock)

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or (services.settings if services else default_settings)
    setup_logging(app_settings.log_level, app_settings.log_format)
    logger = get_logger(__name__)

    services = services or build_services(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Refuses to start without an admin secret, opens the code store,
        loads static codes and starts the sweep/alert timers; stops them and
        closes the store on shutdown.
        """
        if not app_settings.admin_key:
            logger.error("ADMIN_KEY is not set; refusing to start")
            raise RuntimeError(
                "ADMIN_KEY environment variable is not set. "
                "Please set an admin key before starting the server."
            )

        async with AsyncExitStack() as stack:
            if app_settings.alert_webhook_url:
                await stack.enter_async_context(init_http_client())

            await services.startup()
            logger.info(
                "Application startup complete",
                extra={
                    "code_store": app_settings.code_store_backend,
                    "debug_mode": app_settings.debug,
                },
            )
            try:
                yield
            finally:
                await services.shutdown()
                logger.info("Application shutdown complete")

    app = FastAPI(
        title="QuizGate",
        description="Access-code admission control and percentile rankings for the personality quiz",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # Middleware order matters: last added = first executed
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=app_settings.max_body_size)
    app.add_middleware(RequestIdMiddleware)
    # CORS outermost so preflight and rejections carry the CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials="*" not in app_settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Admin-Key", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,
    )

    app.include_router(access_router)
    app.include_router(rankings_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Service status with a short security summary."""
        now = services.clock()
        ledger = services.ledger.stats(now)
        monitor = services.monitor.snapshot()
        return {
            "status": "running",
            "message": "Quiz access service is running",
            "security": {
                "activeIPs": ledger["monitored"] - ledger["blocked"],
                "blockedIPs": ledger["blocked"],
                "totalAttempts": monitor["totalAttempts"],
                "failedAttempts": monitor["failedAttempts"],
            },
            "timestamp": now.isoformat(),
        }

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Health check with code inventory and ledger sizes."""
        now = services.clock()
        health_status: dict[str, Any] = {"status": "healthy"}

        try:
            codes = await services.store.list_codes()
            health_status["accessCodes"] = {
                "total": len(codes),
                "active": sum(1 for c in codes if c.is_valid(now)),
            }
        except QuizGateException as e:
            health_status["status"] = "degraded"
            health_status["accessCodes"] = {"status": "error", "error": e.message[:100]}

        ledger = services.ledger.stats(now)
        health_status["security"] = {
            "monitoredIPs": ledger["monitored"],
            "blockedIPs": ledger["blocked"],
        }
        health_status["dimensions"] = list(DIMENSIONS)
        health_status["serverTime"] = now.isoformat()
        return health_status

    @app.exception_handler(QuizGateException)
    async def quizgate_exception_handler(request: Request, exc: QuizGateException) -> JSONResponse:
        """Map application exceptions to their HTTP status and JSON body."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, **exc.to_response()},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 400 (not FastAPI's default 422) for malformed request bodies."""
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
            message = f"{loc}: {errors[0].get('msg')}" if loc else str(errors[0].get("msg"))
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "validation_error", "message": message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Full details are logged server-side; the client gets the request id
        and, only in debug mode, the exception message.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content = {
            "success": False,
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if app_settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
