from .validator import (
    sanitize_commit_message,
    resolve_project_path,
    validate_file_path,
    validate_build_operation,
    ALLOWED_BUILD_OPERATIONS,
    ALLOWED_EXTENSIONS,
    SENSITIVE_FILES,
    MAX_COMMIT_MESSAGE_LENGTH,
)

__all__ = [
    "sanitize_commit_message",
    "resolve_project_path",
    "validate_file_path",
    "validate_build_operation",
    "ALLOWED_BUILD_OPERATIONS",
    "ALLOWED_EXTENSIONS",
    "SENSITIVE_FILES",
    "MAX_COMMIT_MESSAGE_LENGTH",
]
