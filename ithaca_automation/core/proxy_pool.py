import random
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import structlog

from ..config.loader import load_proxies

logger = structlog.get_logger(__name__)


def normalize_proxy(proxy: str) -> str:
    """Turn ``user:pass@host:port`` into an ``http://`` proxy URL"""
    proxy = proxy.strip()
    if proxy.startswith('http://') or proxy.startswith('https://'):
        return proxy
    return f"http://{proxy}"


class ProxyPool:
    """Set of proxy endpoints with independent random selection per attempt

    An empty pool is valid and means direct connections. The pool keeps no
    "current" proxy; callers carry the selection in their own retry state.
    """

    def __init__(self, proxies: Iterable[str] = (), rng: Optional[random.Random] = None):
        self._proxies: Tuple[str, ...] = tuple(normalize_proxy(p) for p in proxies if p.strip())
        self._rng = rng or random.Random()

    @classmethod
    def from_file(cls, path: Union[str, Path], rng: Optional[random.Random] = None) -> 'ProxyPool':
        return cls(load_proxies(path), rng=rng)

    @property
    def proxies(self) -> Tuple[str, ...]:
        return self._proxies

    def __len__(self) -> int:
        return len(self._proxies)

    def pick_random(self) -> Optional[str]:
        """Pick a proxy, or None for a direct connection"""
        if not self._proxies:
            return None
        return self._rng.choice(self._proxies)
