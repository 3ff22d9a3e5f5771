"""Config module."""

from typing import Dict, Any
from .models import RepoConfig, StackConfig, UserConfig, ToolConfig, StackerConfig

__all__ = ['Config', 'default_config', 'RepoConfig', 'StackConfig', 'UserConfig',
           'ToolConfig', 'StackerConfig']


class Config(StackerConfig):
    """StackerConfig built from the merged dictionary the parser returns."""
    def __init__(self, config: Dict[str, Dict[str, Any]]):
        super().__init__(
            repo=RepoConfig.model_validate(config.get('repo', {})),
            stack=StackConfig.model_validate(config.get('stack', {})),
            user=UserConfig.model_validate(config.get('user', {})),
            tool=ToolConfig.model_validate(config.get('tool', {})),
        )


def default_config() -> Config:
    """Get default config without reading git or the config file."""
    return Config({'repo': {}, 'stack': {}, 'user': {}, 'tool': {}})
