from enum import Enum


class OftContractType(str, Enum):
    OFT = "OFT"
    OFT_ADAPTER = "OFT_ADAPTER"
    UNKNOWN = "UNKNOWN"
