def kline_window(days: int) -> tuple[str, int]:
    """Pick candle interval and count covering ``days`` for mark-price history.

    Intervals use Binance notation (``1m``, ``1h``, ``4h``, ``1d``).
    """
    if days <= 1:
        return "1m", 24 * 60
    if days <= 7:
        return "1h", days * 24
    if days <= 30:
        return "4h", min(days * 6, 100)
    return "1d", min(days, 100)


def usdt_perp_symbol(token_symbol: str) -> str:
    return f"{token_symbol}USDT"
