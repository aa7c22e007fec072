"""
Metrics Module

Prometheus counters shared by the request, retry, bridge and wallet layers.
Counters are always updated; the exporter only runs when the CLI is started
with ``--metrics-port``.
"""

from typing import Optional

import structlog
from prometheus_client import Counter, start_http_server

logger = structlog.get_logger(__name__)

HTTP_REQUESTS = Counter(
    'automation_http_requests_total',
    'Outbound HTTP requests by final outcome',
    ['outcome']
)

RETRY_SLEEPS = Counter(
    'automation_retry_sleeps_total',
    'Backoff sleeps taken before a retry',
    ['operation']
)

BRIDGE_OUTCOMES = Counter(
    'automation_bridge_outcomes_total',
    'Bridge direction results',
    ['direction', 'status']
)

WALLET_OPERATIONS = Counter(
    'automation_wallet_operations_total',
    'Per-wallet operation results',
    ['operation', 'status']
)


def start_metrics_server(port: Optional[int]) -> None:
    """Expose the default registry on ``port`` if one is given"""
    if not port:
        return
    start_http_server(port)
    logger.info("Metrics exporter started", port=port)
