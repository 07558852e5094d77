"""
Configuration management for Newsdesk.

Settings are layered: built-in defaults, then an optional YAML or JSON file
(NEWSDESK_CONFIG_PATH), then NEWSDESK_* environment variables.
"""
import copy
import os
import json
import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple
from dotenv import load_dotenv

from newsdesk.exceptions import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)

ENV_PREFIX = 'NEWSDESK_'

DEFAULT_CONFIG = {
    "http": {
        "rate_limit": 1,
        "max_backoff": 60.0,
        "failure_threshold": 3
    },
    "scraper": {
        "timeout_seconds": 15,
        "max_tries": 2,
        "max_content_length": 5000,
        "max_tags": 10
    },
    "store": {
        "max_articles": 1000,
        "retain_articles": 800
    },
    "filter": {
        "min_quality_score": 30,
        "trusted_domains": [],
        "suspicious_domains": []
    },
    "summarizer": {
        "max_sentences": 3,
        "fallback_length": 200
    },
    "personalizer": {
        "feed_limit": 20,
        "history_limit": 1000
    },
    "pipeline": {
        "max_concurrent": 5,
        "show_progress": True
    }
}


# suffix -> loader
FORMATS = {
    '.yaml': yaml.safe_load,
    '.yml': yaml.safe_load,
    '.json': json.load,
}


def _format_for(path: Path):
    try:
        return FORMATS[path.suffix.lower()]
    except KeyError:
        raise ConfigError(f"Unsupported config file format: {path.suffix}") from None


def merge(target: Dict, source: Dict) -> Dict:
    """Recursively merge source into target, in place."""
    for key, value in source.items():
        if isinstance(target.get(key), dict) and isinstance(value, dict):
            merge(target[key], value)
        else:
            target[key] = value
    return target


def env_overrides(environ=None, prefix: str = ENV_PREFIX) -> Iterator[Tuple[list, Any]]:
    """
    Yield (key path, value) pairs from prefixed environment variables.

    NEWSDESK_STORE__MAX_ARTICLES=500 yields (['store', 'max_articles'], 500).
    Values are decoded as JSON when possible and kept as strings otherwise.
    """
    environ = os.environ if environ is None else environ
    for name, raw in environ.items():
        if not name.startswith(prefix) or name == f'{prefix}CONFIG_PATH':
            continue
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        yield name[len(prefix):].lower().split('__'), value


class Config:
    """
    Configuration manager for Newsdesk.
    """
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            try:
                merge(config, self._read_file(Path(self.config_path)) or {})
            except (ConfigError, OSError, yaml.YAMLError, json.JSONDecodeError) as e:
                logger.error(f"Error loading config from {self.config_path}: {e}")
                logger.warning("Using default configuration")

        for parts, value in env_overrides():
            section = config
            for part in parts[:-1]:
                if not isinstance(section.get(part), dict):
                    section[part] = {}
                section = section[part]
            section[parts[-1]] = value

        return config

    @staticmethod
    def _read_file(path: Path) -> Optional[Dict]:
        loader = _format_for(path)
        if not path.exists():
            logger.warning(f"Config file {path} not found")
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return loader(f)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'store.max_articles')
            default: Returned when any part of the path is missing

        Returns:
            Configuration value
        """
        current = self.config
        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current


# Process-wide configuration, read once at import
config = Config(os.getenv(f'{ENV_PREFIX}CONFIG_PATH'))


def get_config(key: str, default: Any = None) -> Any:
    """Shortcut for config.get on the process-wide configuration."""
    return config.get(key, default)
