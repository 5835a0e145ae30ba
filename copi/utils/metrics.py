import time
from collections.abc import Awaitable
from functools import wraps
from typing import Callable, LiteralString, ParamSpec, TypeVar

from statsd.client import StatsClient

from copi.utils.config import get_config
from copi.utils.logger import get_logger

logger = get_logger(__name__)

_statsd_client: StatsClient | None = None

P = ParamSpec("P")
T = TypeVar("T")


def init_statsd():
    """
    Initializes the StatsD client based on the environment configuration.
    Only `production` and `sandbox` ship a statsd section.
    """
    global _statsd_client

    _statsd_client = StatsClient(
        host=get_config("statsd.host"),
        port=get_config("statsd.port", coerce=int),
        prefix=get_config("app.type"),
    )
    logger.info("statsd client initialized successfully")


def incr(stat_name: str):
    """No-Op if statsd is not initialized"""
    if _statsd_client:
        _statsd_client.incr(stat_name)


def _timing(stat_name: str, time_taken_in_ms: float, rate: int):
    """Logs timing if statsd is not initialized"""
    if _statsd_client:
        _statsd_client.timing(stat_name, time_taken_in_ms, rate)
        return
    logger.debug("Metric '%s' took %fms", stat_name, time_taken_in_ms)


def timing_to_statsd_async(stat_name: LiteralString):
    """
    Decorator for async functions that sends their execution time (in ms) to StatsD
    under `stat_name`. Apply it below the router decorator so the timed wrapper is
    what gets registered as the endpoint.
    """

    def decorator(func: Callable[P, Awaitable[T]]):
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_time_ms = (time.perf_counter() - start_time) * 1000.0
                _timing(stat_name, elapsed_time_ms, rate=1)

        return wrapper

    return decorator
