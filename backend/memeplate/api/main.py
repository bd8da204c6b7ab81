"""
FastAPI Main Application
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from memeplate import __version__
from memeplate.config.settings import settings
from memeplate.context import AppContext, create_context
from memeplate.core.errors import TemplateError
from memeplate.services.error_classifier import ErrorClassifier
from memeplate.services.observability import configure_logging, logger


API_PREFIX = "/api"

_classifier = ErrorClassifier()


def _error_response(status_code: int, message: str, code: str, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": code, "retryable": retryable},
    )


# Exception handlers
def _serialize_validation_errors(errors):
    messages = []
    for err in errors:
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(messages)


async def template_error_handler(request: Request, exc: TemplateError):
    """
    Handle domain errors (400 / 404 / 500)
    """
    classified = _classifier.classify(exc)
    log = logger.warning if classified["status_code"] < 500 else logger.error
    log(
        "template_error",
        path=request.url.path,
        code=classified["code"],
        error=classified["message"],
    )
    return _error_response(
        classified["status_code"],
        classified["message"],
        classified["code"],
        retryable=classified["retryable"],
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors (400)
    """
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=_serialize_validation_errors(exc.errors()),
    )
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        _serialize_validation_errors(exc.errors()) or "Request validation failed",
        ErrorClassifier.ERROR_VALIDATION_FAILED,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Keep framework errors (unknown route, wrong method) in the JSON envelope
    """
    return _error_response(
        exc.status_code,
        str(exc.detail),
        f"HTTP_{exc.status_code}",
        retryable=exc.status_code >= 500,
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Handle generic exceptions (500)
    """
    classified = _classifier.classify(exc)
    logger.error(
        "unexpected_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return _error_response(
        classified["status_code"],
        classified["message"],
        classified["code"],
        retryable=classified["retryable"],
    )


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application around an AppContext

    Args:
        context: Wired collaborators; built from global settings when omitted

    Returns:
        FastAPI app. The lifespan starts and stops the context; callers
        that bypass the lifespan (tests) start it themselves.
    """
    context = context or create_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(context.settings.log_level)
        logger.info("application_starting", log_level=context.settings.log_level)
        await context.startup()
        logger.info("application_started")
        yield
        logger.info("application_shutting_down")
        await context.shutdown()

    app = FastAPI(
        title="Memeplate - Meme Template API",
        description="Meme templates with resolution-independent text and image zones",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.context = context

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TemplateError, template_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Locally stored template images
    if context.settings.blob_backend == "local":
        app.mount(
            context.settings.static_url_prefix,
            StaticFiles(directory=context.settings.static_root, check_dir=False),
            name="static",
        )

    from memeplate.api.routes import health, templates

    app.include_router(health.router, tags=["health"])
    app.include_router(templates.router, prefix=API_PREFIX, tags=["templates"])

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
