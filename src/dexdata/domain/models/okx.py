from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class OkxDexConfig(BaseModel):
    """One OKX Web3 API key-set."""

    model_config = {"frozen": True}

    api_key: str
    secret_key: str
    api_passphrase: str
    project_id: str

    def is_complete(self) -> bool:
        return bool(self.api_key and self.secret_key and self.api_passphrase and self.project_id)


class OkxDexMultiConfig(BaseModel):
    configs: list[OkxDexConfig] = []
    rotation_enabled: bool = False


class OkxDexCandle(BaseModel):
    ts: str
    o: str = "0"
    h: str = "0"
    l: str = "0"  # noqa: E741
    c: str = "0"
    vol: str = "0"
    vol_usd: str = "0"
    confirm: str = ""

    @classmethod
    def from_row(cls, row: list[str]) -> "OkxDexCandle":
        """Build from the vendor's positional array ``[ts, o, h, l, c, vol, volUsd, confirm]``."""
        fields = ["ts", "o", "h", "l", "c", "vol", "vol_usd", "confirm"]
        return cls(**{name: row[i] for i, name in enumerate(fields) if i < len(row) and row[i] is not None})


class OkxBatchPrice(BaseModel):
    model_config = {"extra": "allow", "alias_generator": to_camel, "populate_by_name": True}

    chain_index: str
    token_contract_address: str
    price: str
    time: str


class SwapQuote(BaseModel):
    """Aggregator quote; the vendor payload is large and kept as extra fields."""

    model_config = {"extra": "allow", "alias_generator": to_camel, "populate_by_name": True}

    chain_id: str | None = None
    from_token_amount: str | None = None
    to_token_amount: str | None = None
    estimate_gas_fee: str | None = None
