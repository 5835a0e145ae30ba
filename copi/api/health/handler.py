from datetime import datetime, timezone

from copi.repositories.user_repository import UserRepository
from copi.utils.logger import get_logger

from .schema import CheckStatus, HealthResponse

logger = get_logger(__name__)


def iso_timestamp(now: datetime | None = None) -> str:
    """Format *now* (default: current time) like ``2026-10-17T09:30:00.123Z``."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def check_database(repository: UserRepository | None) -> CheckStatus:
    if repository is None:
        logger.warning("Database check failed: user repository is not initialized.")
        return "unreachable"
    try:
        await repository.ping()
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        return "unreachable"
    return "ok"


async def check_health(repository: UserRepository | None) -> HealthResponse:
    """Probe every dependency once and aggregate the results."""
    checks: dict[str, CheckStatus] = {
        "database": await check_database(repository),
    }
    healthy = all(result == "ok" for result in checks.values())
    return HealthResponse(
        status="ok" if healthy else "degraded",
        timestamp=iso_timestamp(),
        checks=checks,
    )
