from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    coingecko_api_key: str = ""
    moralis_api_key: str = ""
    etherscan_api_key: str = ""
    okx_access_dex_api_key: str = ""
    okx_access_dex_secret_key: str = ""
    okx_access_dex_passphrase: str = ""
    okx_access_dex_project_id: str = ""
    okx_access_dex_configs: str = ""  # key:secret:passphrase:project,key2:...
    binance_alpha_rpc_url: str = "https://bsc-dataseed.binance.org"
    etherscan_chain: str = "bsc"
    cache_dir: str = ".cache"
    http_rate_per_second: float = 10.0
    http_timeout: float = 15.0

    class Config:
        env_file = ".env"


settings = Settings()
