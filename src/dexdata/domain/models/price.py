"""Price data shared by every source adapter and the price aggregator."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from dexdata.domain.enums.price_source import PriceSourceName


class PriceSource(BaseModel):
    model_config = {"frozen": True}

    name: PriceSourceName
    enabled: bool
    priority: int  # Lower = earlier in iteration and result order


class PriceAggregatorConfig(BaseModel):
    """Which sources to query and with what window. Immutable; use ``merged`` to derive."""

    model_config = {"frozen": True}

    sources: dict[PriceSourceName, PriceSource]
    default_days: int = 1
    default_currency: str = "usd"

    def merged(self, overrides: "PriceAggregatorConfig | dict[str, Any] | None") -> "PriceAggregatorConfig":
        """Shallow merge: each top-level key in ``overrides`` replaces ours wholesale.

        Overriding ``sources`` replaces the whole mapping, so only the sources listed there run.
        A listed source may be partial (``{"bybit": {"enabled": True}}``); its missing fields
        come from our entry for that source, or from ``DEFAULT_CONFIG``.
        """
        if overrides is None:
            return self
        if isinstance(overrides, PriceAggregatorConfig):
            return overrides
        update = dict(overrides)
        if "sources" in update:
            update["sources"] = {
                PriceSourceName(name): self._source_from(PriceSourceName(name), source)
                for name, source in update["sources"].items()
            }
        return self.model_copy(update=update)

    def _source_from(self, name: PriceSourceName, source: "PriceSource | dict[str, Any]") -> PriceSource:
        if isinstance(source, PriceSource):
            return source
        base = self.sources.get(name) or DEFAULT_CONFIG.sources.get(name)
        fields = base.model_dump() if base is not None else {}
        return PriceSource(**{**fields, **source, "name": name})

    def enabled_sources(self) -> list[PriceSource]:
        return sorted((s for s in self.sources.values() if s.enabled), key=lambda s: s.priority)


DEFAULT_CONFIG = PriceAggregatorConfig(
    sources={
        PriceSourceName.COINGECKO: PriceSource(name=PriceSourceName.COINGECKO, enabled=False, priority=1),
        PriceSourceName.BYBIT: PriceSource(name=PriceSourceName.BYBIT, enabled=True, priority=2),
        PriceSourceName.OKX: PriceSource(name=PriceSourceName.OKX, enabled=True, priority=3),
        PriceSourceName.BINANCE: PriceSource(name=PriceSourceName.BINANCE, enabled=True, priority=4),
        PriceSourceName.BITGET: PriceSource(name=PriceSourceName.BITGET, enabled=True, priority=5),
    },
    default_days=1,
    default_currency="usd",
)


class PriceDataPoint(BaseModel):
    timestamp: int  # Unix ms
    price: float = Field(ge=0)
    source: str


class SourcePriceData(BaseModel):
    current_price: float
    last_updated: str  # ISO-8601
    historical_data: list[PriceDataPoint] | None = None

    @classmethod
    def placeholder(cls) -> "SourcePriceData":
        """Zero-price entry recorded for a source whose fetch failed."""
        return cls(current_price=0, last_updated=utc_now_iso(), historical_data=[])


class MultiSourcePriceData(BaseModel):
    token_address: str
    sources: dict[str, SourcePriceData] = {}


class PriceComparison(BaseModel):
    source: str
    price: float
    difference: float
    percentage_diff: float


class MarketChartPoint(BaseModel):
    timestamp: int  # Unix ms
    price: float
    market_cap: float = 0
    volume: float = 0


class TokenPriceData(BaseModel):
    """CoinGecko contract-address price with market stats."""

    source: str = "coingecko"
    token_address: str
    platform: str
    current_price: float
    market_cap: float = 0
    volume_24h: float = 0
    price_change_24h: float = 0
    last_updated: str
    historical_data: list[MarketChartPoint] | None = None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Kline(BaseModel):
    """One OHLC candle as returned by a perpetual-futures mark-price endpoint."""

    timestamp: int  # Open time, Unix ms
    open: float
    high: float
    low: float
    close: float
    volume: float = 0
    source: str

    def to_point(self) -> PriceDataPoint:
        return PriceDataPoint(timestamp=self.timestamp, price=self.close, source=self.source)


class MarkPriceHistory(BaseModel):
    symbol: str
    current_price: float | None
    history: list[PriceDataPoint]
