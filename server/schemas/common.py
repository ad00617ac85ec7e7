"""Common schemas used across multiple endpoints."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    code: str


class SuccessResponse(BaseModel):
    """Response model for simple acknowledgements."""
    success: bool = True
    message: str = ""
