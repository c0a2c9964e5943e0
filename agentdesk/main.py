"""FastAPI application: agent configuration, connections, documents and chat."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentdesk.infra.error_handler import (
    NotFoundOrInactive,
    ProviderOperationFailed,
    ReauthorizationRequired,
    ResourceNotFound,
    ServiceError,
    ValidationError,
)
from agentdesk.infra.logging import app_logger
from agentdesk.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware, setup_cors


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    app_logger.info("Application starting up")

    yield

    app_logger.info("Application shutting down")
    from agentdesk.infra.database import engine
    engine.dispose()


app = FastAPI(
    title="AgentDesk API",
    description="""
    AgentDesk lets organizations configure AI agents (a system prompt, a private
    document knowledge base and bound external accounts such as a calendar or CRM)
    and chat with them.

    ## Authentication

    Every endpoint except health checks requires:
    - Header: `X-API-Key: <your-api-key>`
    - Header: `X-Organization-ID: <organization id>`
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Chat",
            "description": "Chat with an assembled agent",
        },
        {
            "name": "Agents",
            "description": "Create, update and link agents",
        },
        {
            "name": "Connections",
            "description": "External accounts (Google Calendar, HubSpot) agents can use as tools",
        },
        {
            "name": "Documents",
            "description": "Index documents for agent search",
        },
        {
            "name": "Health",
            "description": "Health check and monitoring endpoints",
        },
    ],
)

# Setup middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
setup_cors(app)

# Import and register routers
from agentdesk.api.routers import agents, connections, documents, health  # noqa: E402

app.include_router(agents.router)
app.include_router(connections.router)
app.include_router(documents.router)
app.include_router(health.router)


# Error handlers
def _service_error_response(status_code: int, exc: ServiceError, **extra) -> JSONResponse:
    content = {"detail": exc.message, "category": exc.category.value}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(NotFoundOrInactive)
async def not_found_handler(request: Request, exc: NotFoundOrInactive):
    return _service_error_response(404, exc)


@app.exception_handler(ResourceNotFound)
async def resource_not_found_handler(request: Request, exc: ResourceNotFound):
    return _service_error_response(404, exc)


@app.exception_handler(ReauthorizationRequired)
async def reauthorization_handler(request: Request, exc: ReauthorizationRequired):
    """Distinct code so the UI can prompt the user to reconnect the account."""
    return _service_error_response(
        409,
        exc,
        code=ReauthorizationRequired.code,
        connection_id=exc.connection_id,
        provider=exc.provider,
    )


@app.exception_handler(ValidationError)
async def service_validation_handler(request: Request, exc: ValidationError):
    return _service_error_response(400, exc, field=exc.field)


@app.exception_handler(ProviderOperationFailed)
async def provider_failure_handler(request: Request, exc: ProviderOperationFailed):
    app_logger.error(f"Provider failure: {exc.message}")
    return _service_error_response(502, exc, provider=exc.provider, operation=exc.operation)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return _service_error_response(500, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    error_id = str(uuid.uuid4())
    app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error. Error ID: {error_id}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
