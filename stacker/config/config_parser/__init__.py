"""Config parser logic."""

import os
import re
import logging
from typing import Any, Dict, Optional, Tuple
import yaml

from ...typing import GitInterface

# Get module logger
logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".stacker.yaml"
CONFIG_ENV_VAR = "STACKER_CONFIG"

ConfigDict = Dict[str, Dict[str, Any]]

_SECTIONS = ('repo', 'stack', 'user', 'tool')


def config_file_path(git_cmd: Optional[GitInterface] = None) -> str:
    """Path of the config file: $STACKER_CONFIG, else .stacker.yaml at the repo root."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    root = os.getcwd()
    if git_cmd is not None:
        try:
            root = git_cmd.run_cmd("rev-parse --show-toplevel").strip() or root
        except Exception as e:
            logger.debug(f"Could not find repository root, using cwd: {e}")
    return os.path.join(root, CONFIG_FILE_NAME)


def load_config_file(path: str) -> ConfigDict:
    """Read a YAML config file. Missing or unparseable files yield {}."""
    try:
        with open(path, 'r') as f:
            logger.debug(f"Found {path}, loading...")
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug(f"No {path} found, using defaults")
        return {}
    except yaml.YAMLError as e:
        logger.warning(f"Could not parse {path}, using defaults: {e}")
        return {}
    if not isinstance(data, dict):
        if data is not None:
            logger.warning(f"Ignoring {path}: expected a mapping at top level")
        return {}
    return {k: v for k, v in data.items() if k in _SECTIONS and isinstance(v, dict)}


def parse_remote_url(url: str, host: str = "github.com") -> Optional[Tuple[str, str]]:
    """Extract (owner, name) from an SSH or HTTPS remote URL on host."""
    url = url.strip()
    match = re.match(rf'^(?:ssh://)?[^@/]+@{re.escape(host)}[:/](.+)$', url)
    if not match:
        match = re.match(rf'^https?://(?:[^@/]+@)?{re.escape(host)}/(.+)$', url)
    if not match:
        return None
    repo_part = match.group(1)
    if repo_part.endswith(".git"):
        repo_part = repo_part[:-4]
    parts = repo_part.strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def parse_config(git_cmd: GitInterface, overrides: Optional[ConfigDict] = None) -> ConfigDict:
    """Merge defaults, the config file and command line overrides."""
    config: ConfigDict = {
        'repo': {
            'remote': 'origin',
            'target': 'main',
            'github_host': 'github.com',
        },
        'stack': {},
        'user': {},
        'tool': {},
    }

    for source in (load_config_file(config_file_path(git_cmd)), overrides or {}):
        for section, values in source.items():
            config.setdefault(section, {}).update(
                {k: v for k, v in values.items() if v is not None})

    repo = config['repo']
    if not repo.get('github_repo_owner') or not repo.get('github_repo_name'):
        try:
            remote_url = git_cmd.run_cmd(f"remote get-url {repo['remote']}")
            parsed = parse_remote_url(remote_url, repo['github_host'])
            if parsed:
                if not repo.get('github_repo_owner'):
                    repo['github_repo_owner'] = parsed[0]
                if not repo.get('github_repo_name'):
                    repo['github_repo_name'] = parsed[1]
            else:
                logger.debug(f"Remote URL {remote_url!r} is not a {repo['github_host']} repository")
        except Exception as e:
            logger.debug(f"Failed to parse git remote: {e}")

    return config
