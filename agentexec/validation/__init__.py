"""
Compilation validation feedback loop.
"""

from .result import ValidationResult
from .compiler import AsyncCompilationValidator, extract_errors, extract_warnings
from .interceptor import ValidationInterceptor, normalize_tool_name

__all__ = [
    "ValidationResult",
    "AsyncCompilationValidator",
    "extract_errors",
    "extract_warnings",
    "ValidationInterceptor",
    "normalize_tool_name",
]
