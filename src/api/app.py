from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from src.api.error import ClientError, client_error_handler, validation_error_handler
from src.api.routes import billing


def create_app(config) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(config, "AUTO_CREATE_TABLES", False):
            from src.depends import create_tables

            await create_tables()
        yield

    app = FastAPI(
        title="Subscription Billing Reconciliation",
        version="1.0.0",
        docs_url=f"{config.API_PREFIX}/docs",
        openapi_url=f"{config.API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ClientError, client_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(billing.router, prefix=config.API_PREFIX)

    @app.get(f"{config.API_PREFIX}/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
