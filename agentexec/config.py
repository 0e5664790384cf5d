from __future__ import annotations
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Dict, Optional
import yaml

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AGENTEXEC_",
        extra="ignore"  # Allow extra fields from config files
    )

    project_root: Path = Field(default_factory=Path.cwd)

    # Timeouts (seconds)
    validation_timeout_seconds: float = Field(
        120.0, description="Ceiling on blocking waits for the last compilation result"
    )
    build_timeout_seconds: int = Field(
        300, description="Default timeout for a build command, overridable per task"
    )
    git_timeout_seconds: int = Field(60, description="Timeout for a single git invocation")

    # Build configuration: operation -> argv, overrides project type detection
    build_commands: Dict[str, List[str]] = Field(default_factory=dict)

    # Validation feedback loop
    validation_tools: List[str] = Field(default_factory=lambda: [
        "create_file", "create_class", "modify_code", "update_file", "modify_file"
    ])
    auto_validate: bool = Field(
        False, description="Trigger background compilation after source-mutating actions"
    )

    # Human approval
    approval_required: bool = True
    approval_timeout_seconds: float = 60.0
    risky_operations: List[str] = Field(default_factory=lambda: [
        "git_operation:push", "git_operation:commit", "file_operation:delete", "capability_operation:*"
    ])

    # Notifications / observability
    notification_history_size: int = 200
    trace_log_dir: Optional[Path] = None

def _load_yaml(path: Path | None):
    if path and path.exists():
        with open(path, "r") as fh:
            return yaml.safe_load(fh) or {}
    return {}

@lru_cache
def get_settings(config_path: Path | None = None) -> Settings:
    file_vals = _load_yaml(config_path or Path(".agentexec.yml"))
    return Settings(**file_vals)
