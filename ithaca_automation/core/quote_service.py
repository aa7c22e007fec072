"""
Route Quote Service

Asks a bridge aggregator for the transaction that initiates a bridge
transfer. The orchestrator depends on the RouteQuoteService protocol only;
SuperbridgeQuoteService is the production implementation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Protocol

import structlog
from web3 import Web3

from .request_client import ResilientRequestClient
from .types import InvalidRouteError, QuoteRejectedError, QuoteUnavailableError

logger = structlog.get_logger(__name__)

SUPERBRIDGE_ROUTES_URL = "https://api.superbridge.app/api/v2/bridge/routes"
ROLLBRIDGE_HOST = "odyssey-fba0638ec5f46615.testnets.rollbridge.app"
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_SOURCE_GAS_PRICE = 378787194
DEFAULT_DESTINATION_GAS_PRICE = 1000000302

BROWSER_HEADERS = {
    'accept': 'application/json, text/plain, */*',
    'accept-language': 'en-US,en;q=0.9',
    'content-type': 'application/json',
    'cache-control': 'no-cache',
    'pragma': 'no-cache',
    'origin': f'https://{ROLLBRIDGE_HOST}',
    'referer': f'https://{ROLLBRIDGE_HOST}/',
    'sec-ch-ua': '"Not(A:Brand";v="99", "Google Chrome";v="133", "Chromium";v="133"',
    'sec-ch-ua-mobile': '?0',
    'sec-ch-ua-platform': '"Windows"',
    'sec-fetch-dest': 'empty',
    'sec-fetch-mode': 'cors',
    'sec-fetch-site': 'cross-site',
    'user-agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36'
    ),
}


@dataclass(frozen=True)
class QuoteRequest:
    """Native-token bridge quote for ``amount`` wei sent to the sender itself"""
    from_chain_id: int
    to_chain_id: int
    amount: int
    sender: str
    from_gas_price: int = DEFAULT_SOURCE_GAS_PRICE
    to_gas_price: int = DEFAULT_DESTINATION_GAS_PRICE

    def to_payload(self) -> Dict[str, Any]:
        return {
            'host': ROLLBRIDGE_HOST,
            'amount': str(self.amount),
            'fromChainId': str(self.from_chain_id),
            'toChainId': str(self.to_chain_id),
            'fromTokenAddress': NATIVE_TOKEN_ADDRESS,
            'toTokenAddress': NATIVE_TOKEN_ADDRESS,
            'fromTokenDecimals': 18,
            'toTokenDecimals': 18,
            'fromGasPrice': str(self.from_gas_price),
            'toGasPrice': str(self.to_gas_price),
            'graffiti': 'superbridge',
            'recipient': self.sender,
            'sender': self.sender,
            'forceViaL1': False,
        }


def _parse_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text, 16) if text.lower().startswith('0x') else int(text)


@dataclass(frozen=True)
class BridgeRoute:
    """Initiating transaction of a quoted route"""
    to: str
    data: str
    value: int
    chain_id: int

    @classmethod
    def from_quote(cls, quote: Mapping[str, Any], source_chain_id: int) -> 'BridgeRoute':
        """Parse ``result.initiatingTransaction`` of one quote result

        Raises:
            InvalidRouteError: if fields are missing or malformed, or the
                transaction targets a chain other than ``source_chain_id``
        """
        try:
            tx = quote['result']['initiatingTransaction']
            route = cls(
                to=Web3.to_checksum_address(tx['to']),
                data=str(tx['data']),
                value=_parse_int(tx['value']),
                chain_id=_parse_int(tx['chainId']),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRouteError(f"malformed route: {type(e).__name__}: {e}") from e
        if route.chain_id != source_chain_id:
            raise InvalidRouteError(
                f"route transaction is for chain {route.chain_id}, expected {source_chain_id}"
            )
        if route.value < 0:
            raise InvalidRouteError(f"negative route value {route.value}")
        return route


class RouteQuoteService(Protocol):
    async def fetch_routes(self, request: QuoteRequest) -> List[Dict[str, Any]]:
        """Return quote results, best first; an empty list means no route"""
        ...


class SuperbridgeQuoteService:
    """Route quotes from the Superbridge API"""

    def __init__(self, client: ResilientRequestClient, url: str = SUPERBRIDGE_ROUTES_URL):
        self.client = client
        self.url = url

    async def fetch_routes(self, request: QuoteRequest) -> List[Dict[str, Any]]:
        """POST the quote request and return its ``results`` list

        Raises:
            QuoteUnavailableError: if no definitive response was received
            QuoteRejectedError: if the service answered with a non-2xx status
            InvalidRouteError: if the response body is not the expected JSON
        """
        logger.info("Requesting bridge routes", from_chain=request.from_chain_id, to_chain=request.to_chain_id)
        result = await self.client.execute('POST', self.url, json=request.to_payload(), headers=BROWSER_HEADERS)
        if not result.success or result.response is None:
            raise QuoteUnavailableError(
                f"route service unreachable after {result.attempts} attempts: {result.state.last_error}"
            )

        response = result.response
        if not response.ok:
            logger.error("Route request rejected", status=response.status, body=response.body[:500])
            raise QuoteRejectedError(response.status, response.body)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidRouteError(f"route response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidRouteError("route response is not an object")
        results = data.get('results') or []
        if not isinstance(results, list):
            raise InvalidRouteError("route response 'results' is not a list")
        return results
