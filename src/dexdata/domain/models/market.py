"""Perpetual-futures market metadata: order books, tickers and contract specs."""

from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class BookTicker(BaseModel):
    """Best bid/ask for one symbol. Prices and sizes stay strings as the exchange sends them."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    symbol: str
    bid_price: str
    bid_qty: str
    ask_price: str
    ask_qty: str
    time: int = 0


class OrderBookLevel(BaseModel):
    price: str
    quantity: str


class OrderBook(BaseModel):
    symbol: str
    bids: list[OrderBookLevel]
    asks: list[OrderBookLevel]
    last_update_id: int
    time: int  # Unix ms, local receive time


class PerpTicker(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}

    symbol: str
    mark_price: str | None = None
    index_price: str | None = None
    ask1_price: str | None = None
    bid1_price: str | None = None


class LotSize(BaseModel):
    qty_step: float
    min_order_qty: float


class FuturesContract(BaseModel):
    """Bitget ``/api/v2/mix/market/contracts`` row; vendor fields beyond these are kept."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}

    symbol: str
    base_coin: str
    quote_coin: str
    symbol_status: str = ""
    symbol_type: str = ""

    @property
    def is_active(self) -> bool:
        return self.symbol_status == "normal"


def levels(rows: list[list[Any]]) -> list[OrderBookLevel]:
    return [OrderBookLevel(price=str(row[0]), quantity=str(row[1])) for row in rows]
