"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (``~/.branchguard/config.yaml``), plus the
validated ``RunSettings`` for a single invocation.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import yaml
from dotenv import load_dotenv

from branchguard.domain.errors import InvalidConfigurationError
from branchguard.domain.models.common import BackoffPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".branchguard"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_CONCURRENCY = 5
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF_S = 1.0
DEFAULT_THROTTLE_DELAY_S = 1.0
DEFAULT_RATE_LIMIT_BUFFER_S = 1.0

TOKEN_PATTERNS = (
    re.compile(r"^ghp_[a-zA-Z0-9]{36}$"),
    re.compile(r"^github_pat_[a-zA-Z0-9]{22}_[a-zA-Z0-9]{59}$"),
)
OWNER_PATTERN = re.compile(r"^[a-zA-Z0-9][-a-zA-Z0-9]*$")
REPO_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")

# --- Global Configuration Store (Simple Approach) ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file (defaults to DEFAULT_CONFIG_FILE).
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: ENV VARS take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled by os.environ in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets everything loaded or set so far (used by tests)."""
    global _config, _loaded
    _config = {}
    _test_config.clear()
    _loaded = False


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (set via set_config)
    2. Environment variable (key upper-cased, dots as underscores)
    3. YAML config (dotted keys walk nested mappings)
    4. Default value

    Args:
        key: The configuration key, e.g. ``"token"`` or ``"retry.max_retries"``
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    value = _lookup(_config, key)
    if value is not None:
        return value

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def set_config(key: str, value: Any) -> None:
    """Overrides a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key} = {value!r}")
    _test_config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _lookup(config: Dict[str, Any], key: str) -> Any:
    if key in config:
        return config[key]
    node: Any = config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _coerce(value: str) -> Any:
    """Converts common string types coming from the environment."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


# --- Run Settings ---

@dataclass
class RunSettings:
    """Everything one invocation needs, after CLI options and config are merged."""
    token: Optional[str]
    owner: Optional[str]
    repo: Optional[str] = None
    branch: Optional[str] = None
    dry_run: bool = False
    checks: Tuple[str, ...] = ()
    concurrency: int = DEFAULT_CONCURRENCY
    report_file: Optional[str] = None
    verbose: bool = False
    include_archived: bool = True
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF_S
    throttle_delay: float = DEFAULT_THROTTLE_DELAY_S
    batch_delay: float = field(default=2 * DEFAULT_THROTTLE_DELAY_S)
    rate_limit_buffer: float = DEFAULT_RATE_LIMIT_BUFFER_S
    max_rate_limit_wait: Optional[float] = None
    log_file: Optional[str] = None
    error_log_file: Optional[str] = None

    @classmethod
    def from_options(
        cls,
        token: Optional[str] = None,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
        dry_run: bool = False,
        checks: Optional[Sequence[str]] = None,
        concurrency: Optional[int] = None,
        report_file: Optional[str] = None,
        verbose: bool = False,
        include_archived: Optional[bool] = None,
        max_retries: Optional[int] = None,
    ) -> "RunSettings":
        """Merges CLI options (when given) over configuration values.

        Raises:
            InvalidConfigurationError: If a configured value has the wrong type.
        """
        throttle_delay = _number('throttle_delay', DEFAULT_THROTTLE_DELAY_S, float)
        max_wait = get_config('retry.max_rate_limit_wait')
        return cls(
            token=token or _optional_str(get_config('token')),
            owner=owner or _optional_str(get_config('owner')),
            repo=repo,
            branch=branch,
            dry_run=dry_run,
            checks=tuple(checks or ()),
            concurrency=concurrency if concurrency is not None else _number('concurrency', DEFAULT_CONCURRENCY, int),
            report_file=report_file,
            verbose=verbose or _flag('verbose', False),
            include_archived=include_archived if include_archived is not None else _flag('include_archived', True),
            max_retries=max_retries if max_retries is not None else _number('retry.max_retries', DEFAULT_MAX_RETRIES, int),
            initial_backoff=_number('retry.initial_backoff', DEFAULT_INITIAL_BACKOFF_S, float),
            throttle_delay=throttle_delay,
            batch_delay=_number('batch_delay', 2 * throttle_delay, float),
            rate_limit_buffer=_number('retry.rate_limit_buffer', DEFAULT_RATE_LIMIT_BUFFER_S, float),
            max_rate_limit_wait=_number('retry.max_rate_limit_wait', None, float) if max_wait is not None else None,
            log_file=_optional_str(get_config('logging.file')),
            error_log_file=_optional_str(get_config('logging.error_file')),
        )

    @property
    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            initial_delay=self.initial_backoff,
            rate_limit_buffer=self.rate_limit_buffer,
            max_rate_limit_wait=self.max_rate_limit_wait,
        )

    def validate(self, require_owner: bool = True) -> None:
        """Checks the settings before anything touches the network.

        Args:
            require_owner: False for commands that only talk to /user.

        Raises:
            InvalidConfigurationError: With a message naming the bad setting.
        """
        if not self.token:
            raise InvalidConfigurationError("Missing GitHub token. Provide it via --token option or TOKEN environment variable.")
        if require_owner and not self.owner:
            raise InvalidConfigurationError("Missing GitHub owner. Provide it via --owner option or OWNER environment variable.")
        if not any(pattern.match(self.token) for pattern in TOKEN_PATTERNS):
            raise InvalidConfigurationError("GitHub token appears to be invalid. It should be a GitHub personal access token.")
        if self.owner and not OWNER_PATTERN.match(self.owner):
            raise InvalidConfigurationError("Owner appears to be invalid. It should be a valid GitHub username or organization name.")
        if self.repo and not REPO_PATTERN.match(self.repo):
            raise InvalidConfigurationError("Repository name appears to be invalid.")
        if self.branch is not None and not self.branch.strip():
            raise InvalidConfigurationError("Branch name must not be empty.")
        if self.concurrency < 1:
            raise InvalidConfigurationError(f"Concurrency must be at least 1, got {self.concurrency}.")
        if self.max_retries < 0:
            raise InvalidConfigurationError(f"Max retries must not be negative, got {self.max_retries}.")
        for name in ("initial_backoff", "throttle_delay", "batch_delay", "rate_limit_buffer"):
            if getattr(self, name) < 0:
                raise InvalidConfigurationError(f"{name} must not be negative.")
        if self.max_rate_limit_wait is not None and self.max_rate_limit_wait <= 0:
            raise InvalidConfigurationError("retry.max_rate_limit_wait must be positive when set.")


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _number(key: str, default: Any, cast: Callable[[Any], Any]) -> Any:
    """Reads a numeric setting; YAML and env values may arrive as strings."""
    value = get_config(key, default)
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} must be a number, got {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"{key} must be a number, got {value!r}") from None


def _flag(key: str, default: bool) -> bool:
    """Reads a boolean setting, accepting "true"/"false" strings from YAML."""
    value = get_config(key, default)
    if isinstance(value, str):
        value = _coerce(value.strip())
    if value in (0, 1):
        value = bool(value)
    if not isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} must be true or false, got {value!r}")
    return value
