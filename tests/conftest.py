from unittest.mock import AsyncMock, MagicMock

import pytest
from tenacity import wait_none

from dexdata.infra.blockchain.evm.etherscan_client import EtherscanClient
from dexdata.infra.cex.binance_client import BinanceFuturesClient
from dexdata.infra.cex.bitget_client import BitgetClient
from dexdata.infra.cex.bybit_client import BybitClient
from dexdata.infra.moralis.client import MoralisClient
from dexdata.infra.price.coingecko import CoinGeckoClient

_RETRYING_CALLS = [
    CoinGeckoClient._get,
    MoralisClient._get,
    BybitClient._get,
    BinanceFuturesClient._request,
    BitgetClient._get,
    EtherscanClient._call,
]


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Keep tenacity's attempt counts but skip the back-off sleeps."""
    for call in _RETRYING_CALLS:
        monkeypatch.setattr(call.retry, "wait", wait_none())
    monkeypatch.setattr("dexdata.infra.okx.client.RETRY_DELAY", 0)


@pytest.fixture()
def mock_http():
    http = MagicMock()
    http.get_json = AsyncMock()
    http.post_json = AsyncMock()
    return http


def _call_returning(value):
    if isinstance(value, BaseException):
        return MagicMock(call=AsyncMock(side_effect=value))
    return MagicMock(call=AsyncMock(return_value=value))


def _make_contract(**functions):
    contract = MagicMock()
    for name, result in functions.items():
        if callable(result):
            fn = MagicMock(side_effect=lambda *args, _r=result: _call_returning(_r(*args)))
        else:
            fn = MagicMock(return_value=_call_returning(result))
        setattr(contract.functions, name, fn)
    return contract


@pytest.fixture()
def make_contract():
    """web3 contract double: ``make_contract(slot0=[...])`` makes ``functions.slot0(...).call()`` return it.

    Pass a callable to vary the result by call arguments; returning an exception raises it.
    """
    return _make_contract
