from core.observability import configure_observability


# Must run before FastAPI is imported so requests are instrumented
configure_observability()

import logging  # noqa: E402

from fastapi import FastAPI, HTTPException  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from api.routes.api import api_router  # noqa: E402
from core.config import get_settings  # noqa: E402
from core.error_handler import (  # noqa: E402
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.exceptions import DomainError  # noqa: E402
from core.middleware import CorrelationIdMiddleware  # noqa: E402


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the application with middleware, error handlers and routes."""
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description=(
            "Two-stage writing assistant: streamed text analysis with retrieved "
            "style guidance, then a streamed rewrite."
        ),
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Last added is outermost: CORS wraps the safety net, which wraps the
    # correlation ID middleware.
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID", "Retry-After"],
    )

    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(DomainError, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)

    app.include_router(api_router, prefix="/api")

    logger.info("%s started (environment=%s)", settings.APP_NAME, settings.ENVIRONMENT)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
