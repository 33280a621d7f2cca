from dexdata.domain.enums.chain import Chain, ChainId
from dexdata.domain.enums.contract_type import OftContractType
from dexdata.domain.enums.price_source import PriceSourceName

__all__ = [
    "Chain",
    "ChainId",
    "OftContractType",
    "PriceSourceName",
]
