"""FastAPI application setup for the completion gateway."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import AuthError, GatewayError, ValidationError
from ..llm import ILLMProvider, LLMProvider
from ..logging_config import get_logger
from .routes import completions, health

logger = get_logger(__name__)


def _error_body(error: GatewayError) -> dict:
    body: dict = {"error": error.message}
    if isinstance(error, AuthError):
        body["requiresSetup"] = error.requires_setup
    return body


def create_fastapi_app(provider: ILLMProvider | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    llm = provider or LLMProvider()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        logger.info("Gateway started")
        yield
        await llm.close()
        logger.info("Gateway stopped")

    fastapi_app = FastAPI(
        title="Nexus Gateway",
        description="Completion gateway for the Nexus chat client",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @fastapi_app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        logger.error(f"{request.url.path} failed with {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @fastapi_app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @fastapi_app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    # Include routers
    fastapi_app.include_router(completions.create_completions_router(llm))
    fastapi_app.include_router(health.create_health_router())

    return fastapi_app
