from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from app.config import Settings, load_settings
from app.db import Base, create_db_engine, create_session_factory
from app.errors import ListingOptimizerError, ValidationFailed
from app.rate_limit import RateLimiter
from app.services import ListingOptimizer
from app.utils import logger
import app.models  # noqa: F401 ensure models are imported so tables are known


def _error_response(status_code: int, message: str, code: str, detail: Optional[str] = None):
    body = {"detail": message, "code": code}
    if detail:
        body["error"] = detail
    return JSONResponse(status_code=status_code, content=body)


def create_app(settings: Optional[Settings] = None, optimizer: Optional[ListingOptimizer] = None) -> FastAPI:
    settings = settings or load_settings()
    logger.setLevel(settings.log_level)
    engine = create_db_engine(settings)
    session_factory = create_session_factory(engine)

    application = FastAPI(title="Listing Optimizer")
    application.state.settings = settings
    application.state.engine = engine
    application.state.session_factory = session_factory
    application.state.optimizer = optimizer or ListingOptimizer(settings, session_factory)
    application.state.rate_limiter = RateLimiter({
        "default": settings.api_rate_limit,
        "optimize": settings.optimize_rate_limit,
    })

    from app.api.routes import router as api_router
    application.include_router(api_router)

    @application.on_event("startup")
    def on_startup_create_tables():
        # Ensure database tables are created on startup
        Base.metadata.create_all(bind=engine)

    @application.exception_handler(ListingOptimizerError)
    def handle_pipeline_error(request: Request, exc: ListingOptimizerError):
        logger.warning("%s %s -> %s (%s): %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
        return _error_response(exc.status_code, exc.message, exc.code)

    @application.exception_handler(RequestValidationError)
    def handle_request_validation(request: Request, exc: RequestValidationError):
        details = ", ".join(str(err.get("msg")) for err in exc.errors())
        logger.warning("%s %s -> 400: %s", request.method, request.url.path, details)
        return _error_response(400, f"Validation failed: {details}", ValidationFailed.code)

    @application.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        detail = str(exc) if settings.environment == "development" else None
        return _error_response(500, "Internal server error", "internal_error", detail)

    return application


app = create_app()
