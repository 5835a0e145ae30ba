from pydantic import BaseModel, Field


class InstitutionsResponse(BaseModel):
    institutions: list[str] = Field(
        ...,
        description="Distinct institution names of other users, sorted ascending, at most 20.",
        examples=[["Harvard University", "MIT", "Yale"]],
    )


class DepartmentsResponse(BaseModel):
    departments: list[str] = Field(
        ...,
        description="Distinct department names at the requested institution, sorted ascending, at most 20.",
        examples=[["Biology", "Chemistry"]],
    )


class ErrorResponse(BaseModel):
    error: str = Field(..., examples=["Unauthorized"])
