"""
Environment Configuration

Loads ``.env`` files and exposes the environment variables the automation
understands. Command-line options take precedence over everything here.

Variables:
- AUTOMATION_CONFIG, AUTOMATION_KEYS, AUTOMATION_PROXIES: input file paths,
  resolved by the CLI options once ``.env`` is loaded
- SEPOLIA_RPC_URL / ITHACA_RPC_URL: RPC endpoint overrides
"""

import os
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)

DEFAULT_KEYS_FILE = "pk.txt"
DEFAULT_PROXIES_FILE = "proxy.txt"


class EnvironmentManager:
    """Read-only view over process environment plus ``.env`` files"""

    def __init__(self, env_file: Optional[str] = None, load: bool = True):
        if load:
            self.load_env_files(env_file)

    def load_env_files(self, env_file: Optional[str] = None) -> None:
        """Load ``.env`` then ``.env.local``; existing variables win"""
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()
        local_env_path = Path(".env.local")
        if local_env_path.exists():
            load_dotenv(local_env_path)
            logger.info("Loaded local environment overrides", path=str(local_env_path))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = os.getenv(key)
        return value if value else default

    def rpc_url_override(self, chain: str) -> Optional[str]:
        return self.get(f"{chain.upper()}_RPC_URL")
