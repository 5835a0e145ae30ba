from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from copi.api.dependencies import get_optional_user_repository
from copi.repositories.user_repository import UserRepository
from copi.utils.logger import get_logger
from copi.utils.metrics import incr

from .handler import check_health
from .schema import HealthResponse

logger = get_logger(__name__)
health_router = APIRouter(prefix="/api", tags=["Health"])


@health_router.get(
    "/health",
    response_model=HealthResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": HealthResponse}},
)
async def health_check(
    repository: UserRepository | None = Depends(get_optional_user_repository),
):
    """Unauthenticated liveness probe for load balancers and container health checks."""
    logger.debug("/api/health check requested.")
    report = await check_health(repository)

    if report.status == "ok":
        incr("copi.api.health.ok")
        status_code = status.HTTP_200_OK
    else:
        incr("copi.api.health.degraded")
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=report.model_dump())
