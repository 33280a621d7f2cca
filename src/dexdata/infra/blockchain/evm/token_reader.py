"""ERC-20 metadata reads with a process-wide token-info cache, plus pool-side USD pricing."""

import asyncio
import logging

from web3 import AsyncWeb3, Web3

from dexdata.domain.models.pool import DexConfig, Erc20TokenInfo
from dexdata.infra.cache.memory import MemoryCache
from dexdata.infra.price.coingecko import CoinGeckoClient

logger = logging.getLogger(__name__)

RPC_TIMEOUT = 15
TOKEN_INFO_TTL = 5 * 60
TOKEN_CACHE_PREFIX = "token_info_"
# Chains whose entries are dropped when one token is cleared
CLEARABLE_CHAIN_IDS = (1, 56, 137, 42161, 10)

STABLECOIN_PRICES: dict[str, float] = {"USDT": 1.0, "USDC": 1.0, "BUSD": 1.0, "DAI": 1.0}
DEFAULT_TOKEN_PRICE_USD = 0.1

ERC20_ABI = [
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "symbol",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "name",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


def token_cache_key(chain_id: int, token_address: str) -> str:
    return f"{TOKEN_CACHE_PREFIX}{chain_id}_{token_address.lower()}"


class Erc20TokenReader:
    """Token metadata for one chain.

    Decimals, symbol and name are cached for five minutes under ``token_info_<chainId>_<address>``.
    Share one ``MemoryCache`` between readers to get a process-wide cache.
    """

    def __init__(
        self,
        config: DexConfig,
        w3: AsyncWeb3 | None = None,
        cache: MemoryCache | None = None,
        coingecko: CoinGeckoClient | None = None,
    ) -> None:
        self._config = config
        self._w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(config.rpc_url, request_kwargs={"timeout": RPC_TIMEOUT})
        )
        self._cache = cache if cache is not None else MemoryCache()
        self._coingecko = coingecko

    @property
    def chain_id(self) -> int:
        return self._config.chain_id

    def _token(self, token_address: str):
        return self._w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)

    def _cached(self, token_address: str) -> Erc20TokenInfo | None:
        return self._cache.get(token_cache_key(self.chain_id, token_address))

    async def _read(self, token_address: str) -> Erc20TokenInfo:
        token = self._token(token_address)
        decimals, symbol, name = await asyncio.gather(
            token.functions.decimals().call(),
            token.functions.symbol().call(),
            token.functions.name().call(),
        )
        info = Erc20TokenInfo(address=token_address, symbol=symbol, decimals=int(decimals), name=name)
        self._cache.set(token_cache_key(self.chain_id, token_address), info, TOKEN_INFO_TTL)
        return info

    async def get_token_info(self, token_address: str) -> Erc20TokenInfo:
        cached = self._cached(token_address)
        if cached is not None:
            logger.debug("Token info cache hit for %s on chain %d", token_address, self.chain_id)
            return cached

        try:
            info = await self._read(token_address)
        except Exception:
            logger.exception("Error fetching token info for %s on chain %d", token_address, self.chain_id)
            raise
        logger.info("Fetched token info for %s (%s) on chain %d", token_address, info.symbol, self.chain_id)
        return info

    async def get_batch_token_info(self, token_addresses: list[str]) -> dict[str, Erc20TokenInfo]:
        """Metadata keyed by input address, in input order. Cached tokens cost no RPC call."""
        found: dict[str, Erc20TokenInfo] = {}
        uncached = []
        for address in token_addresses:
            cached = self._cached(address)
            if cached is not None:
                found[address] = cached
            elif address not in uncached:
                uncached.append(address)

        if uncached:
            try:
                fetched = await asyncio.gather(*(self._read(a) for a in uncached))
            except Exception:
                logger.exception("Error in batch token info fetch on chain %d", self.chain_id)
                raise
            found.update(zip(uncached, fetched))
            logger.info("Batch fetched %d token infos on chain %d", len(uncached), self.chain_id)

        return {a: found[a] for a in token_addresses}

    async def get_balance(self, token_address: str, owner: str) -> int:
        return int(await self._token(token_address).functions.balanceOf(Web3.to_checksum_address(owner)).call())

    async def get_token_price_usd(self, token_address: str, symbol: str) -> float:
        """Stablecoins at 1.0, else CoinGecko, else a flat 0.1 placeholder."""
        if symbol in STABLECOIN_PRICES:
            return STABLECOIN_PRICES[symbol]

        if self._coingecko is not None:
            try:
                price = await self._coingecko.get_token_price_by_chain_id(self.chain_id, token_address)
            except Exception as e:
                logger.warning("CoinGecko price lookup failed for %s (%s): %s", symbol, token_address, e)
                price = None
            if price is not None and price.current_price > 0:
                logger.info("CoinGecko price for %s (%s): %s", symbol, token_address, price.current_price)
                return price.current_price

        logger.warning("Unknown price for %s (%s), using %s", symbol, token_address, DEFAULT_TOKEN_PRICE_USD)
        return DEFAULT_TOKEN_PRICE_USD

    def clear_token_cache(self, token_address: str | None = None) -> int:
        """Drop one token's entries on every known chain, or all token entries."""
        if token_address is None:
            removed = self._cache.clear(TOKEN_CACHE_PREFIX)
            logger.info("Cleared %d token info entries", removed)
            return removed

        chain_ids = dict.fromkeys((*CLEARABLE_CHAIN_IDS, self.chain_id))
        keys = [token_cache_key(chain_id, token_address) for chain_id in chain_ids]
        removed = sum(1 for key in keys if self._cache.get(key) is not None)
        for key in keys:
            self._cache.delete(key)
        logger.info("Cleared token info cache for %s", token_address)
        return removed
