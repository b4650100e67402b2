"""
Pydantic Schemas

Request and response models for the control channel.
"""

from incognitomail.schemas.rpc import (
    ErrorResponse,
    RpcRequest,
    RpcResponse,
)

__all__ = [
    "ErrorResponse",
    "RpcRequest",
    "RpcResponse",
]
