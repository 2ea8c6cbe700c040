"""Configuration schema for branchwatch.

Uses Pydantic for schema enforcement and clear error messages.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field, field_validator


class GitConfig(BaseModel):
    """How the git executable is invoked."""

    executable: str = Field(
        default="",
        description="Path to the git executable (empty = GitPython's resolved git)",
    )
    terminal_prompt: bool = Field(
        default=False,
        description="Allow git to prompt on the terminal for credentials",
    )
    env: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables passed to every git call",
    )

    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        """Warn if an explicit executable path doesn't exist."""
        if v and ("/" in v or "\\" in v):
            path = Path(v).expanduser()
            if not path.exists():
                warnings.warn(
                    f"Git executable does not exist: {v}",
                    UserWarning,
                )
        return v

    def process_env(self) -> Dict[str, str]:
        """Environment overrides for a git subprocess."""
        env: Dict[str, str] = {}
        if not self.terminal_prompt:
            # Fail fast instead of hanging when credentials are required
            env["GIT_TERMINAL_PROMPT"] = "0"
            env["GCM_INTERACTIVE"] = "never"
        env.update(self.env)
        return env


class BranchwatchConfig(BaseModel):
    """Root configuration."""

    version: int = Field(default=1, description="Config schema version")
    git: GitConfig = Field(default_factory=GitConfig)
