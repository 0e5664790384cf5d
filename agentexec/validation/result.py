# agentexec/validation/result.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationResult(BaseModel):
    """
    Outcome of a compilation check, phrased so it can be handed back to the planner.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    diagnostics: Optional[str] = None

    @classmethod
    def ok(cls, message: str = "Validation passed successfully") -> "ValidationResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, message: str, errors: Optional[List[str]] = None,
               warnings: Optional[List[str]] = None,
               diagnostics: Optional[str] = None) -> "ValidationResult":
        return cls(success=False, message=message, errors=list(errors or []),
                   warnings=list(warnings or []), diagnostics=diagnostics)

    @classmethod
    def with_warnings(cls, message: str, warnings: List[str]) -> "ValidationResult":
        return cls(success=True, message=message, warnings=list(warnings))

    @classmethod
    def unknown(cls) -> "ValidationResult":
        return cls(success=False, message="Validation status unknown")

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def formatted_errors(self) -> str:
        return "\n".join(self.errors)

    @property
    def formatted_warnings(self) -> str:
        return "\n".join(self.warnings)
