from unittest.mock import AsyncMock, MagicMock

import pytest

from ithaca_automation.config.chain_specs import ITHACA, SEPOLIA
from ithaca_automation.core.quote_service import (
    ROLLBRIDGE_HOST,
    SUPERBRIDGE_ROUTES_URL,
    BridgeRoute,
    QuoteRequest,
    SuperbridgeQuoteService,
)
from ithaca_automation.core.request_client import HttpResponse, RequestResult, ResilientRequestClient
from ithaca_automation.core.retry_policy import RetryState
from ithaca_automation.core.types import InvalidRouteError, QuoteRejectedError, QuoteUnavailableError
from tests.utils.test_utils import BRIDGE_CONTRACT, create_route_quote

SENDER = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


def make_service(result: RequestResult) -> SuperbridgeQuoteService:
    client = MagicMock(spec=ResilientRequestClient)
    client.execute = AsyncMock(return_value=result)
    return SuperbridgeQuoteService(client)


def response_result(status: int, body: str) -> RequestResult:
    return RequestResult(success=True, response=HttpResponse(status=status, body=body), state=RetryState(attempts=1))


def make_request() -> QuoteRequest:
    return QuoteRequest(
        from_chain_id=SEPOLIA.chain_id,
        to_chain_id=ITHACA.chain_id,
        amount=10 ** 14,
        sender=SENDER,
        from_gas_price=5,
        to_gas_price=7,
    )


def test_payload_matches_route_api():
    payload = make_request().to_payload()

    assert payload == {
        'host': ROLLBRIDGE_HOST,
        'amount': '100000000000000',
        'fromChainId': '11155111',
        'toChainId': '911867',
        'fromTokenAddress': '0x0000000000000000000000000000000000000000',
        'toTokenAddress': '0x0000000000000000000000000000000000000000',
        'fromTokenDecimals': 18,
        'toTokenDecimals': 18,
        'fromGasPrice': '5',
        'toGasPrice': '7',
        'graffiti': 'superbridge',
        'recipient': SENDER,
        'sender': SENDER,
        'forceViaL1': False,
    }


def test_default_gas_price_hints():
    request = QuoteRequest(from_chain_id=1, to_chain_id=2, amount=1, sender=SENDER)
    assert request.to_payload()['fromGasPrice'] == '378787194'
    assert request.to_payload()['toGasPrice'] == '1000000302'


@pytest.mark.asyncio
async def test_fetch_routes_posts_payload():
    service = make_service(response_result(200, '{"results": [{"id": "a"}, {"id": "b"}]}'))

    routes = await service.fetch_routes(make_request())

    assert [r['id'] for r in routes] == ['a', 'b']
    call = service.client.execute.await_args
    assert call.args == ('POST', SUPERBRIDGE_ROUTES_URL)
    assert call.kwargs['json']['sender'] == SENDER
    assert call.kwargs['headers']['origin'] == f'https://{ROLLBRIDGE_HOST}'


@pytest.mark.asyncio
async def test_missing_results_means_no_route():
    service = make_service(response_result(200, '{}'))
    assert await service.fetch_routes(make_request()) == []


@pytest.mark.asyncio
async def test_unreachable_service():
    service = make_service(RequestResult(success=False, response=None, state=RetryState(attempts=5)))

    with pytest.raises(QuoteUnavailableError):
        await service.fetch_routes(make_request())


@pytest.mark.asyncio
async def test_definitive_rejection():
    service = make_service(response_result(400, '{"error": "amount too low"}'))

    with pytest.raises(QuoteRejectedError) as exc_info:
        await service.fetch_routes(make_request())

    assert exc_info.value.status == 400
    assert 'amount too low' in exc_info.value.body


@pytest.mark.asyncio
async def test_non_json_body():
    service = make_service(response_result(200, '<html>oops</html>'))

    with pytest.raises(InvalidRouteError):
        await service.fetch_routes(make_request())


def test_route_from_quote():
    route = BridgeRoute.from_quote(create_route_quote(SEPOLIA.chain_id, to=BRIDGE_CONTRACT.lower()), SEPOLIA.chain_id)

    assert route.to == BRIDGE_CONTRACT
    assert route.value == 10 ** 14
    assert route.chain_id == SEPOLIA.chain_id
    assert route.data == "0xdeadbeef"


def test_route_accepts_hex_value():
    route = BridgeRoute.from_quote(create_route_quote(SEPOLIA.chain_id, value="0x5af3107a4000"), SEPOLIA.chain_id)
    assert route.value == 10 ** 14


def test_route_for_wrong_chain_is_rejected():
    with pytest.raises(InvalidRouteError):
        BridgeRoute.from_quote(create_route_quote(ITHACA.chain_id), SEPOLIA.chain_id)


@pytest.mark.parametrize("quote", [
    {},
    {'result': {}},
    {'result': {'initiatingTransaction': {'to': BRIDGE_CONTRACT, 'data': '0x'}}},
    {'result': {'initiatingTransaction': {'to': 'not-an-address', 'data': '0x', 'value': '1', 'chainId': '11155111'}}},
    {'result': {'initiatingTransaction': {'to': BRIDGE_CONTRACT, 'data': '0x', 'value': 'abc', 'chainId': '11155111'}}},
    'not-a-dict',
])
def test_malformed_routes_are_rejected(quote):
    with pytest.raises(InvalidRouteError):
        BridgeRoute.from_quote(quote, SEPOLIA.chain_id)
