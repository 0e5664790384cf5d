"""
Input validation for agent operations.

Stateless checks run before any action touches the project: commit message
sanitizing, path containment and build operation allow-listing. Every check
raises SecurityValidationError with a human-readable reason.
"""

import logging
import re
from pathlib import Path
from typing import FrozenSet, Union

from agentexec.errors import SecurityValidationError

logger = logging.getLogger(__name__)

MAX_COMMIT_MESSAGE_LENGTH = 500

# ; | & $ ` and line breaks would let a message escape a shell command line
DANGEROUS_CHARS = re.compile(r"[;|&$`\n\r]")

# Leading "-x" / "--flag" would be read by git as an option
VCS_FLAG = re.compile(r"^\s*--?[a-zA-Z]")

ALLOWED_EXTENSIONS: FrozenSet[str] = frozenset({
    ".py", ".pyi", ".java", ".kt", ".kts", ".scala", ".groovy",
    ".js", ".jsx", ".ts", ".tsx", ".go", ".rs", ".c", ".h", ".cpp", ".hpp", ".cs",
    ".html", ".css", ".scss", ".sql", ".sh",
    ".xml", ".yaml", ".yml", ".json", ".toml", ".ini", ".cfg",
    ".md", ".rst", ".txt", ".properties", ".csv",
    ".gradle", ".gitignore", ".editorconfig", ".dockerignore",
})

SENSITIVE_FILES: FrozenSet[str] = frozenset({
    ".env", ".env.local", ".env.production",
    "credentials.json", "secrets.json", ".netrc", ".pypirc",
    "id_rsa", "id_dsa", "id_ecdsa", "id_ed25519",
    ".pem", ".key", ".p12", ".pfx", ".jks", ".keystore",
})

ALLOWED_BUILD_OPERATIONS: FrozenSet[str] = frozenset({
    "build", "compile", "test", "clean", "package", "jar", "diagnostics",
})


def sanitize_commit_message(message: str) -> str:
    """
    Validate a commit message and return it trimmed with double quotes escaped.

    Raises:
        SecurityValidationError: empty, too long, starts with a flag, or
            contains shell metacharacters.
    """
    if message is None or not str(message).strip():
        raise SecurityValidationError("Commit message cannot be null or empty")

    trimmed = str(message).strip()

    if len(trimmed) > MAX_COMMIT_MESSAGE_LENGTH:
        raise SecurityValidationError(
            f"Commit message too long ({len(trimmed)} characters). "
            f"Maximum allowed: {MAX_COMMIT_MESSAGE_LENGTH}"
        )

    if VCS_FLAG.search(trimmed):
        raise SecurityValidationError(
            "Commit message cannot start with a flag (--flag); it would be passed to git as an option"
        )

    if DANGEROUS_CHARS.search(trimmed):
        logger.warning("Dangerous characters detected in commit message: %r", trimmed)
        raise SecurityValidationError(
            "Commit message contains dangerous characters (; | & $ ` newline)"
        )

    sanitized = trimmed.replace('"', '\\"')
    logger.debug("Commit message sanitized, length %d", len(sanitized))
    return sanitized


def resolve_project_path(file_path: Union[str, Path], project_root: Union[str, Path]) -> Path:
    """
    Resolve file_path against project_root and require the result to stay inside it.

    Backslashes are treated as separators so that Windows-style traversal
    ("..\\..\\etc") is caught on every platform.
    """
    if file_path is None or not str(file_path).strip():
        raise SecurityValidationError("File path cannot be null or empty")
    if project_root is None or not str(project_root).strip():
        raise SecurityValidationError("Project root path cannot be null or empty")

    root = Path(project_root).resolve()
    candidate = Path(str(file_path).strip().replace("\\", "/"))
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()

    # Component-wise prefix check: /project-evil is not inside /project
    if not resolved.is_relative_to(root):
        logger.warning("Path traversal attempt: %s escapes project root %s", file_path, root)
        raise SecurityValidationError(
            f"Path traversal detected. File path must be within project: {file_path}"
        )
    return resolved


def validate_file_path(file_path: Union[str, Path], project_root: Union[str, Path]) -> Path:
    """
    Full path check for files the agent may write: containment, deny-list, extension allow-list.

    Returns:
        The absolute, normalized path.
    """
    resolved = resolve_project_path(file_path, project_root)
    if resolved == Path(project_root).resolve():
        raise SecurityValidationError(f"File path must name a file inside the project: {file_path}")

    file_name = resolved.name.lower()

    for sensitive in SENSITIVE_FILES:
        if file_name == sensitive or file_name.endswith(sensitive):
            logger.warning("Attempt to touch sensitive file: %s", file_name)
            raise SecurityValidationError(
                f"Cannot modify sensitive file: {file_name}. It may contain credentials or keys."
            )

    if not any(file_name.endswith(ext) for ext in ALLOWED_EXTENSIONS):
        # Conventional extension-less names (Dockerfile, Makefile, README) are fine
        if "." in file_name:
            raise SecurityValidationError(
                f"File extension not allowed: {file_name}. "
                f"Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
            )
        logger.debug("Allowing file without extension: %s", file_name)

    logger.debug("File path validated: %s", resolved)
    return resolved


def validate_build_operation(operation: str) -> str:
    """
    Check a build operation name against the allow-list.

    Surrounding whitespace is ignored; any whitespace inside the name is
    rejected since it could smuggle extra arguments or flags.

    Returns:
        The normalized (trimmed, lower-case) operation name.
    """
    if operation is None or not str(operation).strip():
        raise SecurityValidationError("Build operation cannot be null or empty")

    normalized = str(operation).strip().lower()

    if any(ch.isspace() for ch in normalized):
        logger.warning("Build operation contains whitespace (possible flag injection): %r", operation)
        raise SecurityValidationError(
            f"Build operation cannot contain spaces or additional arguments: {operation}"
        )

    if normalized not in ALLOWED_BUILD_OPERATIONS:
        raise SecurityValidationError(
            f"Build operation not allowed: {operation}. "
            f"Allowed operations: {', '.join(sorted(ALLOWED_BUILD_OPERATIONS))}"
        )

    logger.debug("Build operation validated: %s", normalized)
    return normalized
