"""Pydantic models for config types."""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class RepoConfig(BaseModel):
    """Repository configuration."""
    remote: str = "origin"
    target: str = "main"
    reviewers: List[str] = Field(default_factory=list)
    merge_method: Literal['squash', 'merge', 'rebase'] = "squash"
    github_host: str = "github.com"
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None

    class Config:
        """Pydantic config."""
        extra = "allow"


class StackConfig(BaseModel):
    """How stack branches are named and published."""
    branch_template: str = "{stack}/{index}"
    create_local_branches: bool = False

    class Config:
        """Pydantic config."""
        extra = "allow"


class UserConfig(BaseModel):
    """User configuration."""
    log_git_commands: bool = False

    class Config:
        """Pydantic config."""
        extra = "allow"


class ToolConfig(BaseModel):
    """Tool configuration."""
    git_timeout: float = 60.0
    github_timeout: int = 30

    class Config:
        """Pydantic config."""
        extra = "allow"


class StackerConfig(BaseModel):
    """Full stacker configuration."""
    repo: RepoConfig = Field(default_factory=RepoConfig)
    stack: StackConfig = Field(default_factory=StackConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)

    class Config:
        """Pydantic config."""
        extra = "allow"
