"""
Control channel request and response schemas.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class RpcRequest(BaseModel):
    """Request carrying the opaque argument of a control method."""

    args: Optional[Any] = Field(None, description="Method argument")


class RpcResponse(BaseModel):
    """Successful control method response."""

    result: Optional[Any] = Field(None, description="Method result")


class ErrorResponse(BaseModel):
    """Error response."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    detail: Optional[Any] = Field(None, description="Additional error details")
