from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from copi.api.health.router import health_router
from copi.api.match_pool.router import match_pool_router
from copi.repositories.user_repository import PostgresUserRepository
from copi.utils.config import Environment, current_environment, get_config, init_vault_client
from copi.utils.database import PostgresClient
from copi.utils.errors import CopiError, copi_error_handler
from copi.utils.identity import SessionTokenResolver
from copi.utils.logger import get_logger
from copi.utils.metrics import init_statsd

logger = get_logger(__name__)


def init_service():
    """
    Initializes the service at start-up

    Raises:
        RuntimeError: If Vault or statsd could not be initialized
    """
    try:
        environment = current_environment()
        match environment:
            case Environment.PRODUCTION:
                init_vault_client()
                logger.info("Initialized Vault successfully.")
                init_statsd()

            case Environment.SANDBOX:
                init_statsd()

            case _:
                logger.info("Skipping statsd initialization for '%s'", environment)
        logger.info("Loaded settings successfully.")
    except Exception as e:
        logger.critical(f"init_service failed {str(e)}")
        raise RuntimeError(f"Error while initializing service: {str(e)}") from e


# --- Lifespan Management ---
@asynccontextmanager
async def lifespan(
    app_instance: FastAPI,
):
    """Initializes services on startup and handles cleanup on shutdown."""
    logger.info("FastAPI application startup: Initializing services...")
    database_client: PostgresClient | None = None
    user_repository: PostgresUserRepository | None = None
    identity_resolver: SessionTokenResolver | None = None

    try:
        init_service()
        identity_resolver = SessionTokenResolver.from_config()
        database_client = PostgresClient.from_config()
        await database_client.open()
        user_repository = PostgresUserRepository(database_client)
        logger.info("Application context initialized successfully.")
    except RuntimeError as e:
        logger.critical(
            f"Core service initialization failed in init_service(): {e}",
            exc_info=True,
        )
    except Exception as e:
        logger.critical(
            f"Unexpected critical error during service lifespan startup: {e}",
            exc_info=True,
        )

    app_instance.state.database_client = database_client
    app_instance.state.user_repository = user_repository
    app_instance.state.identity_resolver = identity_resolver

    yield

    logger.info("FastAPI application shutdown: Cleaning up resources...")
    if database_client is not None:
        await database_client.close()
    app_instance.state.database_client = None
    app_instance.state.user_repository = None
    app_instance.state.identity_resolver = None
    logger.info("Database pool and identity resolver cleaned up.")


app = FastAPI(title="CoPI API", lifespan=lifespan)
app.add_exception_handler(CopiError, copi_error_handler)

# Load Routers
app.include_router(health_router)
app.include_router(match_pool_router)


@app.get("/")
async def read_root():
    return {"message": "Welcome to the CoPI API!"}


if __name__ == "__main__":
    port = get_config("app.port", coerce=int)
    should_reload = get_config("app.reload", coerce=bool)
    workers = get_config("app.workers", coerce=int)

    logger.info(
        "Starting copi api on port %d with reload=%s, workers=%d", port, should_reload, workers
    )
    uvicorn.run(
        app="copi.main:app",
        host="0.0.0.0",
        port=port,
        reload=should_reload,
        workers=workers,
        log_level="error",
    )
