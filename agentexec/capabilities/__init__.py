from .protocol import (
    PROTOCOL_VERSION,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    INTERNAL_ERROR,
    CapabilityRequest,
    CapabilityResponse,
    CapabilityError,
)
from .provider import CapabilityServer, FunctionCapabilityServer, CapabilityProvider

__all__ = [
    "PROTOCOL_VERSION",
    "INVALID_PARAMS",
    "METHOD_NOT_FOUND",
    "INTERNAL_ERROR",
    "CapabilityRequest",
    "CapabilityResponse",
    "CapabilityError",
    "CapabilityServer",
    "FunctionCapabilityServer",
    "CapabilityProvider",
]
