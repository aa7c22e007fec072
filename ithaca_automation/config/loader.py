"""
Configuration Loader

Loads the runtime inputs of the automation from the working directory:
- settings from ``config.json`` or ``config.yaml`` (defaults when absent)
- the newline-delimited private key list
- the optional newline-delimited proxy list
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
import yaml

from ..core.types import KeyFileError
from .settings import AutomationConfig, DEFAULT_CONFIG

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]

CONFIG_CANDIDATES = ('config.json', 'config.yaml', 'config.yml')


def _read_lines(path: Path) -> List[str]:
    return [line.strip() for line in path.read_text(encoding='utf-8').splitlines() if line.strip()]


def load_private_keys(path: PathLike) -> List[str]:
    """Read private keys, one per line, ignoring blank lines

    Raises:
        KeyFileError: if the file cannot be read
    """
    try:
        keys = _read_lines(Path(path))
    except OSError as e:
        raise KeyFileError(f"Cannot read private keys from {path}: {e}") from e
    logger.info("Loaded private keys", count=len(keys), path=str(path))
    return keys


def load_proxies(path: Optional[PathLike]) -> List[str]:
    """Read proxies, one per line; a missing file means direct connection"""
    if path is None:
        return []
    try:
        proxies = _read_lines(Path(path))
    except FileNotFoundError:
        logger.warning("Proxy file not found, using direct connection", path=str(path))
        return []
    except OSError as e:
        logger.warning("Cannot read proxy file, using direct connection", path=str(path), error=str(e))
        return []
    logger.info("Loaded proxies", count=len(proxies), path=str(path))
    return proxies


def load_config_file(path: Path) -> Dict[str, Any]:
    """Parse a JSON or YAML settings file into a dictionary"""
    text = path.read_text(encoding='utf-8')
    if path.suffix.lower() in ('.yaml', '.yml'):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level value in {path} must be a mapping")
    return data


def find_config_file(directory: PathLike = '.') -> Optional[Path]:
    for name in CONFIG_CANDIDATES:
        candidate = Path(directory) / name
        if candidate.exists():
            return candidate
    return None


def load_config(path: Optional[PathLike] = None) -> AutomationConfig:
    """Load settings, falling back to built-in defaults

    A missing or unparsable file yields the defaults. Values that parse but
    are invalid raise ConfigError from ``AutomationConfig.from_dict``.

    Args:
        path: Explicit settings file; searched in the working directory if None
    """
    config_path = Path(path) if path else find_config_file()
    if config_path is None or not config_path.exists():
        logger.warning("No configuration file found, using defaults")
        return DEFAULT_CONFIG

    try:
        raw = load_config_file(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Error loading configuration, using defaults", path=str(config_path), error=str(e))
        return DEFAULT_CONFIG

    logger.info("Found configuration file", path=str(config_path))
    return AutomationConfig.from_dict(raw)
