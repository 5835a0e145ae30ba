from copi.repositories.user_repository import UserRepository
from copi.utils.errors import InvalidQueryError
from copi.utils.logger import get_logger

RESULT_LIMIT = 20

logger = get_logger(__name__)


def normalize_param(value: str | None) -> str | None:
    """Trimmed value, or None when absent or blank."""
    if value is None:
        return None
    return value.strip() or None


def _finalize(values: list[str | None]) -> list[str]:
    # Distinct, code-point ascending and capped whatever the repository returns;
    # matches the store's COLLATE "C" ordering.
    return sorted({value for value in values if value is not None})[:RESULT_LIMIT]


async def lookup_institutions(
    repository: UserRepository, caller_id: str, q: str | None
) -> list[str]:
    """Institutions of users other than *caller_id*, optionally filtered by *q*."""
    search = normalize_param(q)
    institutions = await repository.find_distinct_institutions(
        search=search, exclude_id=caller_id, limit=RESULT_LIMIT
    )
    result = _finalize(institutions)
    logger.info("Institution lookup (search=%r) returned %d results", search, len(result))
    return result


async def lookup_departments(
    repository: UserRepository, caller_id: str, institution: str | None, q: str | None
) -> list[str]:
    """Departments at *institution* of users other than *caller_id*."""
    institution = normalize_param(institution)
    if institution is None:
        raise InvalidQueryError("institution query parameter is required")

    search = normalize_param(q)
    departments = await repository.find_distinct_departments(
        institution=institution, search=search, exclude_id=caller_id, limit=RESULT_LIMIT
    )
    result = _finalize(departments)
    logger.info(
        "Department lookup (institution=%r, search=%r) returned %d results",
        institution,
        search,
        len(result),
    )
    return result
