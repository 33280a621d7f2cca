from pydantic import BaseModel


class TokenTransfer(BaseModel):
    """Row of Etherscan ``account/tokentx``. Extra vendor fields are kept."""

    model_config = {"extra": "allow"}

    block_number: int
    time_stamp: int
    hash: str
    from_address: str
    to_address: str
    contract_address: str
    value: str
    token_name: str = ""
    token_symbol: str = ""
    token_decimal: int = 0

    @classmethod
    def from_api(cls, row: dict) -> "TokenTransfer":
        return cls(
            block_number=int(row.get("blockNumber", 0)),
            time_stamp=int(row.get("timeStamp", 0)),
            hash=row.get("hash", ""),
            from_address=row.get("from", ""),
            to_address=row.get("to", ""),
            contract_address=row.get("contractAddress", ""),
            value=row.get("value", "0"),
            token_name=row.get("tokenName", ""),
            token_symbol=row.get("tokenSymbol", ""),
            token_decimal=int(row.get("tokenDecimal") or 0),
        )


class BlockRange(BaseModel):
    start_block: int
    end_block: int
