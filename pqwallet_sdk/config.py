"""
Environment-driven configuration.
"""
import os
import urllib.parse
from typing import ClassVar, Dict, Mapping, Optional, Tuple

import pydantic
from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError
from .models import _as_address
from .signer.snap import DEFAULT_SNAP_ID
from .userop import ENTRY_POINT_V07

DEFAULT_CHAIN_ID = 412346


def require_secure_url(url_name: str, url: str) -> None:
    """
    Reject non-https URLs unless they point at localhost/127.0.0.1.

    Raises:
        ValueError: If the URL is insecure
    """
    parsed = urllib.parse.urlparse(url)
    # Check if it's a localhost or 127.0.0.1 address (with or without port)
    host = parsed.netloc.split(':')[0]
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not is_local:
        raise ValueError(f"{url_name} must use https:// for security (got: {parsed.scheme}://)")


class WalletConfig(BaseModel):
    """Addresses, endpoints and timing for one wallet process."""

    rpc_url: str
    bundler_url: str
    account: str
    validator_module: Optional[str] = None
    entry_point: str = ENTRY_POINT_V07
    chain_id: int = Field(DEFAULT_CHAIN_ID, gt=0)
    snap_id: str = DEFAULT_SNAP_ID
    receipt_timeout: float = Field(30.0, gt=0)
    poll_interval: float = Field(1.0, gt=0)

    @field_validator("rpc_url", "bundler_url")
    @classmethod
    def _check_url(cls, value: str, info) -> str:
        require_secure_url(info.field_name, value)
        return value

    @field_validator("account", "entry_point")
    @classmethod
    def _check_address(cls, value):
        return _as_address(value)

    @field_validator("validator_module")
    @classmethod
    def _check_optional_address(cls, value):
        return None if value in (None, "") else _as_address(value)

    ENV_VARS: ClassVar[Dict[str, str]] = {
        "rpc_url": "PQWALLET_RPC_URL",
        "bundler_url": "PQWALLET_BUNDLER_URL",
        "account": "PQWALLET_ACCOUNT",
        "validator_module": "PQWALLET_VALIDATOR_MODULE",
        "entry_point": "PQWALLET_ENTRY_POINT",
        "chain_id": "PQWALLET_CHAIN_ID",
        "snap_id": "PQWALLET_SNAP_ID",
        "receipt_timeout": "PQWALLET_RECEIPT_TIMEOUT",
        "poll_interval": "PQWALLET_POLL_INTERVAL",
    }
    REQUIRED: ClassVar[Tuple[str, ...]] = ("rpc_url", "bundler_url", "account")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WalletConfig":
        """
        Load configuration from PQWALLET_* environment variables.

        Raises:
            ConfigurationError: If a required variable is missing or a value is invalid
        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[var]
            for field, var in cls.ENV_VARS.items()
            if environ.get(var, "").strip()
        }
        missing = [cls.ENV_VARS[field] for field in cls.REQUIRED if field not in values]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")
        try:
            return cls(**values)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
