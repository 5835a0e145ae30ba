from fastapi import APIRouter, Depends, status

from copi.api.dependencies import get_caller_id, get_user_repository
from copi.repositories.user_repository import UserRepository
from copi.utils.errors import CopiError
from copi.utils.logger import get_logger
from copi.utils.metrics import incr, timing_to_statsd_async

from .handler import lookup_departments, lookup_institutions
from .schema import DepartmentsResponse, ErrorResponse, InstitutionsResponse

match_pool_router = APIRouter(prefix="/api/match-pool", tags=["Match pool"])
logger = get_logger(__name__)

ERROR_RESPONSES = {
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


@match_pool_router.get(
    "/institutions",
    response_model=InstitutionsResponse,
    responses=ERROR_RESPONSES,
    summary="Institution autocomplete",
)
@timing_to_statsd_async("copi.api.match_pool.institutions")
async def get_institutions(
    q: str | None = None,
    caller_id: str = Depends(get_caller_id),
    repository: UserRepository = Depends(get_user_repository),
):
    """
    Distinct institutions of other users, used by the affiliation picker.
    `q` filters by case-insensitive substring.
    """
    try:
        institutions = await lookup_institutions(repository, caller_id, q)
    except CopiError:
        incr("copi.api.match_pool.institutions.failure")
        raise
    incr("copi.api.match_pool.institutions.success")
    return InstitutionsResponse(institutions=institutions)


@match_pool_router.get(
    "/departments",
    response_model=DepartmentsResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}, **ERROR_RESPONSES},
    summary="Department autocomplete",
)
@timing_to_statsd_async("copi.api.match_pool.departments")
async def get_departments(
    institution: str | None = None,
    q: str | None = None,
    caller_id: str = Depends(get_caller_id),
    repository: UserRepository = Depends(get_user_repository),
):
    """Distinct departments at `institution`, optionally filtered by `q`."""
    try:
        departments = await lookup_departments(repository, caller_id, institution, q)
    except CopiError:
        incr("copi.api.match_pool.departments.failure")
        raise
    incr("copi.api.match_pool.departments.success")
    return DepartmentsResponse(departments=departments)
