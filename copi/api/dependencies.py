from fastapi import Depends, Request

from copi.repositories.user_repository import UserRepository
from copi.utils.errors import ServiceNotReadyError, StoreUnreachableError, UnauthorizedError
from copi.utils.identity import IdentityResolver
from copi.utils.logger import get_logger

logger = get_logger(__name__)


def get_optional_user_repository(request: Request) -> UserRepository | None:
    """Repository from application state; None when startup could not create it."""
    return getattr(request.app.state, "user_repository", None)


def get_user_repository(
    repository: UserRepository | None = Depends(get_optional_user_repository),
) -> UserRepository:
    if repository is None:
        logger.error("User repository is not available in application state.")
        raise StoreUnreachableError()
    return repository


def get_identity_resolver(request: Request) -> IdentityResolver | None:
    return getattr(request.app.state, "identity_resolver", None)


async def get_caller_id(
    request: Request,
    resolver: IdentityResolver | None = Depends(get_identity_resolver),
) -> str:
    """Authenticated caller's user id; raises UnauthorizedError otherwise."""
    if resolver is None:
        logger.error("Identity resolver is not available in application state.")
        raise ServiceNotReadyError()

    caller_id = await resolver.resolve(request)
    if not caller_id:
        raise UnauthorizedError()
    return caller_id
