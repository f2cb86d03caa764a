"""Response envelope shared by the analytics and fitness routers."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """
    Standard success envelope.

    ``data`` is null with an explanatory ``message`` when there is not
    enough data yet for the requested computation.
    """

    success: bool = Field(default=True, description="Whether the request succeeded")
    data: Optional[DataT] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Explanation when data is null")


class ErrorDetail(BaseModel):
    """Body of a failed request."""

    message: str
    code: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail
