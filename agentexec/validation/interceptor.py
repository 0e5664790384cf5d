"""
Validation interceptor: compiles after source-mutating actions and turns
the outcome into feedback text for the planner.
"""

import logging
import re
from typing import Iterable, Optional

from agentexec.executors.build import BuildOperationExecutor
from agentexec.tasks.schema import TaskResult

from .compiler import AsyncCompilationValidator, build_task, extract_errors, extract_warnings
from .result import ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_TOOLS = ("create_file", "create_class", "modify_code", "update_file", "modify_file")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def normalize_tool_name(name: str) -> str:
    """createJavaClass -> create_java_class; snake_case names pass through."""
    return _CAMEL_BOUNDARY.sub("_", name.strip()).lower()


class ValidationInterceptor:

    def __init__(self, build_executor: BuildOperationExecutor,
                 async_validator: Optional[AsyncCompilationValidator] = None,
                 validation_tools: Iterable[str] = DEFAULT_VALIDATION_TOOLS):
        self.build_executor = build_executor
        self.async_validator = async_validator or AsyncCompilationValidator(build_executor)
        self.validation_tools = {normalize_tool_name(t) for t in validation_tools}

    def requires_compilation_check(self, tool_name: Optional[str],
                                   result: Optional[TaskResult] = None) -> bool:
        # A failed action changed nothing worth compiling
        if result is not None and not result.success:
            return False
        if not tool_name:
            return False
        return normalize_tool_name(tool_name) in self.validation_tools

    def auto_validate(self, tool_name: str, action_result: Optional[TaskResult] = None) -> ValidationResult:
        """
        Compile in the background (joining a run already in flight) and wait
        for the result. A failure is enriched with a diagnostics run.
        """
        logger.info("Auto-validating after %s", tool_name)
        try:
            self.async_validator.trigger()
            compilation = self.async_validator.get_last_result()
            if compilation.success:
                logger.info("Auto-validation passed for %s", tool_name)
                if compilation.has_warnings:
                    return ValidationResult.with_warnings("Code compiles successfully", compilation.warnings)
                return ValidationResult.ok("Code compiles successfully")

            logger.warning("Auto-validation failed for %s: %s", tool_name, compilation.message)
            return self._diagnose(f"Compilation failed after {tool_name}", fallback=compilation)
        except Exception as e:  # validation must never break the planning loop
            logger.error("Error during auto-validation for %s", tool_name, exc_info=True)
            return ValidationResult.failed(f"Validation error: {e}")

    def validate_sync(self) -> ValidationResult:
        """Compile in the calling thread, then run diagnostics if that failed."""
        logger.debug("Synchronous validation started")
        try:
            compile_result = self.build_executor.execute(
                build_task("compile", "Compile project for validation")
            )
            if compile_result.success:
                logger.debug("Synchronous compilation passed")
                warnings = extract_warnings(compile_result)
                if warnings:
                    return ValidationResult.with_warnings("Compilation successful", warnings)
                return ValidationResult.ok("Compilation successful")

            fallback = ValidationResult.failed("Compilation failed", extract_errors(compile_result))
            return self._diagnose("Compilation failed", fallback=fallback)
        except Exception as e:
            logger.error("Error during synchronous validation", exc_info=True)
            return ValidationResult.failed(f"Validation error: {e}")

    def _diagnose(self, message: str, fallback: ValidationResult) -> ValidationResult:
        diagnostics = self.build_executor.execute(
            build_task("diagnostics", "Get compilation diagnostics")
        )
        errors = extract_errors(diagnostics) if not diagnostics.success else []
        warnings = extract_warnings(diagnostics)
        logger.debug("Diagnostics found %d errors, %d warnings", len(errors), len(warnings))
        return ValidationResult.failed(
            message,
            errors or fallback.errors,
            warnings or fallback.warnings,
            diagnostics=diagnostics.get_data("output", str) or fallback.diagnostics,
        )

    @staticmethod
    def format_validation_feedback(validation: ValidationResult, original_message: str) -> str:
        """Render a result as text appended to the action's own message."""
        if validation.success:
            return f"{original_message}\nCode validated - compilation successful"

        lines = [original_message, "", "Compilation validation failed:", ""]
        if validation.has_errors:
            lines.append("Errors to fix:")
            lines.extend(f"  - {error}" for error in validation.errors)
        if validation.has_warnings:
            lines.extend(["", "Warnings:"])
            lines.extend(f"  - {warning}" for warning in validation.warnings)
        lines.extend(["", "Please fix these issues before continuing."])
        return "\n".join(lines)

    def cleanup(self) -> None:
        self.async_validator.shutdown()
