from typing import Literal

from pydantic import BaseModel, Field

CheckStatus = Literal["ok", "unreachable"]


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = Field(
        ...,
        description='"ok" when every check passed, "degraded" otherwise.',
        examples=["ok", "degraded"],
    )
    timestamp: str = Field(
        ...,
        description="UTC time of the check in ISO-8601 with milliseconds.",
        examples=["2026-10-17T09:30:00.123Z"],
    )
    checks: dict[str, CheckStatus] = Field(
        ...,
        description="Result of each individual check, keyed by check name.",
        examples=[{"database": "ok"}, {"database": "unreachable"}],
    )
