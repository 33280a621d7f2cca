"""OKX Web3 (DEX) API key configuration and constants."""

import logging

from dexdata.config import Settings
from dexdata.domain.models.okx import OkxDexConfig, OkxDexMultiConfig
from dexdata.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://web3.okx.com/api/v5/"
RATE_LIMIT_WINDOW = 1.0  # seconds per key
MAX_WAIT_TIME = 65.0
DEFAULT_SLIPPAGE = "0.005"  # 0.5%
OKX_DEX_CHAIN_INDEX = "56"  # BSC
SUCCESS_CODE = "0"
RATE_LIMIT_CODES = {"50011", "50061"}


def default_config(settings: Settings) -> OkxDexConfig:
    return OkxDexConfig(
        api_key=settings.okx_access_dex_api_key,
        secret_key=settings.okx_access_dex_secret_key,
        api_passphrase=settings.okx_access_dex_passphrase,
        project_id=settings.okx_access_dex_project_id,
    )


def parse_multi_config(raw: str) -> list[OkxDexConfig]:
    """Parse ``key:secret:passphrase:project,key2:...``; incomplete entries are dropped."""
    configs = []
    for entry in raw.split(","):
        parts = entry.strip().split(":")
        if len(parts) != 4:
            continue
        config = OkxDexConfig(api_key=parts[0], secret_key=parts[1], api_passphrase=parts[2], project_id=parts[3])
        if config.is_complete():
            configs.append(config)
    return configs


def load_multi_config(settings: Settings) -> OkxDexMultiConfig:
    """Key-sets from ``OKX_ACCESS_DEX_CONFIGS``, falling back to the single-key variables."""
    if settings.okx_access_dex_configs:
        configs = parse_multi_config(settings.okx_access_dex_configs)
        logger.debug("Found %d OKX DEX API configurations for rotation", len(configs))
        return OkxDexMultiConfig(configs=configs, rotation_enabled=len(configs) > 1)

    single = default_config(settings)
    if not single.api_key:
        return OkxDexMultiConfig(configs=[], rotation_enabled=False)
    validate_config(single)
    return OkxDexMultiConfig(configs=[single], rotation_enabled=False)


def validate_config(config: OkxDexConfig) -> None:
    if not config.is_complete():
        raise ConfigurationError("Missing required OKX DEX configuration")
