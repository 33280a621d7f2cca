"""OKX request signing: base64(HMAC-SHA256(secret, timestamp + method + path + query/body))."""

import base64
import hashlib
import hmac
from datetime import datetime, timezone

from dexdata.domain.models.okx import OkxDexConfig
from dexdata.infra.okx.config import validate_config


def iso_timestamp() -> str:
    """UTC timestamp with millisecond precision, e.g. ``2024-05-01T12:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sign(secret_key: str, timestamp: str, method: str, request_path: str, query_or_body: str = "") -> str:
    message = f"{timestamp}{method}{request_path}{query_or_body}"
    digest = hmac.new(secret_key.encode(), message.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def create_signed_headers(
    config: OkxDexConfig,
    method: str,
    request_path: str,
    query_or_body: str = "",
    timestamp: str | None = None,
) -> dict[str, str]:
    validate_config(config)
    timestamp = timestamp or iso_timestamp()
    return {
        "Content-Type": "application/json",
        "OK-ACCESS-KEY": config.api_key,
        "OK-ACCESS-SIGN": sign(config.secret_key, timestamp, method, request_path, query_or_body),
        "OK-ACCESS-TIMESTAMP": timestamp,
        "OK-ACCESS-PASSPHRASE": config.api_passphrase,
        "OK-ACCESS-PROJECT": config.project_id,
    }
