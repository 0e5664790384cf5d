"""
Request/response envelope for delegating named capabilities to tool servers.
"""

from typing import Any, Dict, Optional, Type, TypeVar
import uuid

from pydantic import AliasChoices, BaseModel, Field, model_validator

T = TypeVar("T")

PROTOCOL_VERSION = "2.0"

# Standard error codes
INVALID_PARAMS = -32602
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


class CapabilityRequest(BaseModel):
    """
    A call of one capability (``method``) with its parameters.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    method: str = Field(..., description="Capability name, e.g. 'file_read'")
    params: Dict[str, Any] = Field(default_factory=dict)
    version: str = Field(PROTOCOL_VERSION, validation_alias=AliasChoices("version", "jsonrpc"))

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "5f0c2e52-0d55-4d0e-9a3e-0d8f9c1d2b11",
                "method": "git_commit",
                "params": {"message": "Add service layer"},
                "version": "2.0",
            }
        }
    }

    @classmethod
    def method_call(cls, method: str, params: Optional[Dict[str, Any]] = None) -> "CapabilityRequest":
        return cls(method=method, params=dict(params or {}))

    def get_param(self, key: str, expected_type: Type[T] = object) -> Optional[T]:
        value = self.params.get(key)
        if value is not None and isinstance(value, expected_type):
            return value
        return None

    def has_param(self, key: str) -> bool:
        return key in self.params

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "CapabilityRequest":
        return cls.model_validate_json(raw)


class CapabilityError(BaseModel):
    code: int
    message: str
    data: Optional[Dict[str, Any]] = None


class CapabilityResponse(BaseModel):
    """
    Answer to a CapabilityRequest: either ``result`` or ``error``, never both.
    """
    id: str
    result: Any = None
    error: Optional[CapabilityError] = None
    version: str = Field(PROTOCOL_VERSION, validation_alias=AliasChoices("version", "jsonrpc"))

    @model_validator(mode='after')
    def result_xor_error(self):
        if self.error is not None and self.result is not None:
            raise ValueError("A response carries either a result or an error, not both")
        return self

    @classmethod
    def ok(cls, request_id: str, result: Any = None) -> "CapabilityResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def fail(cls, request_id: str, code: int, message: str,
             data: Optional[Dict[str, Any]] = None) -> "CapabilityResponse":
        return cls(id=request_id, error=CapabilityError(code=code, message=message, data=data))

    @property
    def is_success(self) -> bool:
        return self.error is None

    def get_result(self, expected_type: Type[T] = object) -> Optional[T]:
        if self.result is not None and isinstance(self.result, expected_type):
            return self.result
        return None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_json(cls, raw: str) -> "CapabilityResponse":
        return cls.model_validate_json(raw)
