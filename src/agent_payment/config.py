"""Configuration system for agent-payment.

Settings live in a TOML file (``config.toml`` inside the data directory).
A missing file yields defaults. Paths that the settings leave unset fall
back to the :class:`RuntimePaths` built once per invocation.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import tomli_w
from pydantic import BaseModel, Field, ValidationError

from agent_payment.errors import InvalidConfigError

HOME_ENV_VAR = "AGENT_PAYMENT_HOME"


# ---------------------------------------------------------------------------
# Runtime paths
# ---------------------------------------------------------------------------


def expand_path(value: str | Path) -> Path:
    """Expand a leading ``~`` to the user's home directory."""
    return Path(value).expanduser()


@dataclass(frozen=True)
class RuntimePaths:
    """Filesystem locations used by a single invocation."""

    data_dir: Path
    wallet_path: Path
    password_path: Path
    config_path: Path

    @classmethod
    def from_data_dir(cls, data_dir: str | Path) -> RuntimePaths:
        root = expand_path(data_dir)
        return cls(
            data_dir=root,
            wallet_path=root / "wallet.json",
            password_path=root / "password.txt",
            config_path=root / "config.toml",
        )

    @classmethod
    def default(cls, home: str | Path | None = None) -> RuntimePaths:
        """Resolve the data directory: *home* > ``$AGENT_PAYMENT_HOME`` > ``~/.payment``."""
        if home is None:
            home = os.environ.get(HOME_ENV_VAR) or "~/.payment"
        return cls.from_data_dir(home)


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class WalletConfig(BaseModel):
    """Keystore and password file locations."""

    path: Optional[str] = None
    password_file: Optional[str] = None


class NetworkConfig(BaseModel):
    """The network payments are sent on. Incomplete without rpc_url and chain_id."""

    name: Optional[str] = None
    chain_id: Optional[int] = None
    rpc_url: Optional[str] = None


class PaymentConfig(BaseModel):
    """Defaults applied to payments."""

    default_token: Optional[str] = None
    default_token_symbol: Optional[str] = None
    default_token_decimals: Optional[int] = Field(default=None, ge=0, le=255)
    max_auto_payment: Optional[str] = None


class PaymentSettings(BaseModel):
    """Root configuration object mirroring ``config.toml``."""

    wallet: WalletConfig = Field(default_factory=WalletConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)

    def wallet_path(self, paths: RuntimePaths) -> Path:
        if self.wallet.path:
            return expand_path(self.wallet.path)
        return paths.wallet_path

    def password_path(self, paths: RuntimePaths) -> Path:
        if self.wallet.password_file:
            return expand_path(self.wallet.password_file)
        return paths.password_path


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def load_config(path: Path) -> PaymentSettings:
    """Load settings from a TOML file, returning defaults if it does not exist."""
    if not path.exists():
        return PaymentSettings()
    try:
        with open(path, "rb") as fh:
            raw_data = tomllib.load(fh)
        return PaymentSettings.model_validate(raw_data)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise InvalidConfigError(f"{path} is not valid TOML: {exc}") from exc
    except ValidationError as exc:
        raise InvalidConfigError(f"{path}: {exc}") from exc


def dump_config(config: PaymentSettings) -> str:
    """Render settings as TOML text, omitting unset values."""
    return tomli_w.dumps(config.model_dump(mode="python", exclude_none=True))


def save_config(config: PaymentSettings, path: Path) -> None:
    """Serialize settings to *path* with owner-only permissions."""
    from agent_payment.wallet.keystore import ensure_private_dir, restrict_permissions

    ensure_private_dir(path.parent)
    path.write_text(dump_config(config), encoding="utf-8")
    restrict_permissions(path)


# ---------------------------------------------------------------------------
# Key-based access
# ---------------------------------------------------------------------------


class ConfigKey(str, Enum):
    """Every settable configuration key."""

    WALLET_PATH = "wallet.path"
    WALLET_PASSWORD_FILE = "wallet.password_file"
    NETWORK_NAME = "network.name"
    NETWORK_CHAIN_ID = "network.chain_id"
    NETWORK_RPC_URL = "network.rpc_url"
    PAYMENT_DEFAULT_TOKEN = "payment.default_token"
    PAYMENT_DEFAULT_TOKEN_SYMBOL = "payment.default_token_symbol"
    PAYMENT_DEFAULT_TOKEN_DECIMALS = "payment.default_token_decimals"
    PAYMENT_MAX_AUTO_PAYMENT = "payment.max_auto_payment"

    @classmethod
    def parse(cls, key: str) -> ConfigKey:
        try:
            return cls(key)
        except ValueError:
            raise InvalidConfigError(f"Unknown config key: {key}") from None


def _parse_chain_id(value: str) -> int:
    try:
        chain_id = int(value)
    except ValueError:
        raise InvalidConfigError(f"Invalid chain_id: {value}") from None
    if chain_id < 0:
        raise InvalidConfigError(f"Invalid chain_id: {value}")
    return chain_id


def _parse_decimals(value: str) -> int:
    try:
        decimals = int(value)
    except ValueError:
        raise InvalidConfigError(f"Invalid decimals: {value}") from None
    if not 0 <= decimals <= 255:
        raise InvalidConfigError(f"Invalid decimals: {value}")
    return decimals


# key -> (section, field, parser)
_KEY_TABLE: dict[ConfigKey, tuple[str, str, Callable[[str], object]]] = {
    ConfigKey.WALLET_PATH: ("wallet", "path", str),
    ConfigKey.WALLET_PASSWORD_FILE: ("wallet", "password_file", str),
    ConfigKey.NETWORK_NAME: ("network", "name", str),
    ConfigKey.NETWORK_CHAIN_ID: ("network", "chain_id", _parse_chain_id),
    ConfigKey.NETWORK_RPC_URL: ("network", "rpc_url", str),
    ConfigKey.PAYMENT_DEFAULT_TOKEN: ("payment", "default_token", str),
    ConfigKey.PAYMENT_DEFAULT_TOKEN_SYMBOL: ("payment", "default_token_symbol", str),
    ConfigKey.PAYMENT_DEFAULT_TOKEN_DECIMALS: ("payment", "default_token_decimals", _parse_decimals),
    ConfigKey.PAYMENT_MAX_AUTO_PAYMENT: ("payment", "max_auto_payment", str),
}


def get_value(config: PaymentSettings, key: ConfigKey) -> str | None:
    """Return the value for *key* as text, or ``None`` if it is unset."""
    section, field, _ = _KEY_TABLE[key]
    value = getattr(getattr(config, section), field)
    return None if value is None else str(value)


def set_value(config: PaymentSettings, key: ConfigKey, value: str) -> None:
    """Parse *value* for *key* and store it on *config*."""
    section, field, parse = _KEY_TABLE[key]
    setattr(getattr(config, section), field, parse(value))


def valid_keys() -> list[str]:
    return [key.value for key in ConfigKey]
