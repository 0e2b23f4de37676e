"""Configuration management for Kit.

This module provides a clean interface for reading and writing
both repository-local and global configuration files.
"""

import os
import configparser
from pathlib import Path
from typing import Optional, Tuple

from .errors import InvalidConfig, StoreIOError

TRUE_VALUES = {'true', 'yes', 'on', '1'}
FALSE_VALUES = {'false', 'no', 'off', '0', ''}


def _parser() -> configparser.ConfigParser:
    # Real .git/config files repeat keys, use bare boolean keys and
    # contain '%' in values.
    return configparser.ConfigParser(strict=False, interpolation=None, allow_no_value=True)


class Config:
    """
    Manages Kit configuration files.

    Configuration is stored in INI format, like Git:
    - Global config: ~/.kitconfig
    - Repository config: .git/config

    Repository config takes precedence over global config.
    Environment variables take highest precedence.
    """

    def __init__(self, repo_config_path: Optional[Path] = None):
        """
        Initialize Config manager.

        Args:
            repo_config_path: Path to repository config file, if in a repo
        """
        self.repo_config_path = Path(repo_config_path) if repo_config_path else None
        self._global_config = None
        self._repo_config = None

    @property
    def global_config_path(self) -> Path:
        return Path.home() / '.kitconfig'

    def _load(self, path: Path) -> configparser.ConfigParser:
        parser = _parser()
        if path.exists():
            try:
                parser.read(path, encoding='utf-8')
            except configparser.Error as e:
                raise StoreIOError(str(path), f"unparsable config ({e})") from e
        return parser

    @property
    def global_config(self) -> configparser.ConfigParser:
        """Load and return global configuration."""
        if self._global_config is None:
            self._global_config = self._load(self.global_config_path)
        return self._global_config

    @property
    def repo_config(self) -> Optional[configparser.ConfigParser]:
        """Load and return repository configuration."""
        if self._repo_config is None and self.repo_config_path:
            self._repo_config = self._load(self.repo_config_path)
        return self._repo_config

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> Optional[str]:
        """
        Get a configuration value.

        Priority order (highest to lowest):
        1. Environment variables (KIT_<SECTION>_<KEY>)
        2. Repository config
        3. Global config
        4. Fallback value

        Args:
            section: Config section (e.g., 'user', 'core')
            key: Config key (e.g., 'name', 'email')
            fallback: Default value if not found

        Returns:
            Configuration value or fallback. A key present without a
            value reads as 'true', as Git treats it.
        """
        env_key = f"KIT_{section.upper()}_{key.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is not None:
            return env_value

        for config in (self.repo_config, self.global_config):
            if config is not None and config.has_option(section, key):
                value = config.get(section, key)
                return 'true' if value is None else value

        return fallback

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        """
        Get a boolean configuration value.

        Raises:
            InvalidConfig: If the value is not a recognized boolean (also a ValueError)
        """
        value = self.get(section, key)
        if value is None:
            return fallback
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise InvalidConfig(f'{section}.{key}', value, 'boolean')

    def set(self, section: str, key: str, value: str, global_config: bool = False) -> None:
        """
        Set a configuration value.

        Args:
            section: Config section
            key: Config key
            value: Value to set
            global_config: If True, write to global config; otherwise repo config
        """
        if global_config:
            config = self.global_config
            config_path = self.global_config_path
        else:
            if not self.repo_config_path:
                raise ValueError("No repository config path available")
            config = self.repo_config
            config_path = self.repo_config_path

        if not config.has_section(section):
            config.add_section(section)

        config.set(section, key, value)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                config.write(f)
        except OSError as e:
            raise StoreIOError(str(config_path), e.strerror or str(e)) from e

    def get_user_identity(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Get user name and email for commits.

        Returns:
            Tuple of (name, email), either may be None
        """
        name = self.get('user', 'name')
        email = self.get('user', 'email')
        return name, email
