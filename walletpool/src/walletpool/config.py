"""
Wallet pool configuration.

Runtime settings come from the environment (prefix ``MW_``) or a ``.env``
file via pydantic-settings. Group configurations describe how many unspents
of each script family a pooled wallet should hold.
"""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from walletpool.backends.rest import ENVIRONMENT_URLS
from walletpool.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_FEE_RATE,
    DEFAULT_MIN_UNSPENT_BALANCE,
    DEFAULT_POOL_SIZE,
    DEFAULT_REMOTE_TIMEOUT,
    DEFAULT_SEND_TIMEOUT,
    PASSPHRASE_SEED,
)
from walletpool.errors import ConfigurationError
from walletpool.models import CHAIN_CODE_GROUPS, ChainCodeGroup, get_group


class GroupConfig(BaseModel):
    """
    Unspent requirements of a wallet group.

    ``min_unspents`` and ``max_unspents`` are keyed by chain code group name
    (``p2sh``, ``p2shP2wsh``, ``p2wsh``). Missing minimums default to 0,
    missing maximums to unlimited (``None``).
    """

    name: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")
    min_unspents: dict[str, int] = Field(default_factory=dict)
    max_unspents: dict[str, int | None] = Field(default_factory=dict)
    min_unspent_balance: int = Field(default=DEFAULT_MIN_UNSPENT_BALANCE, gt=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_groups(self) -> GroupConfig:
        known = {g.name for g in CHAIN_CODE_GROUPS}
        for key in (*self.min_unspents, *self.max_unspents):
            if key not in known:
                raise ValueError(f"unknown chain code group {key!r}, expected one of {known}")

        for key, minimum in self.min_unspents.items():
            if minimum < 0:
                raise ValueError(f"min_unspents[{key}] must be >= 0")
            maximum = self.max_unspents.get(key)
            if maximum is not None and maximum < 2 * minimum:
                # a reset tops up to twice the minimum
                raise ValueError(
                    f"max_unspents[{key}]={maximum} is below the reset count {2 * minimum}"
                )

        if sum(self.min_unspents.values()) <= 0:
            raise ValueError("at least one group must require unspents")

        return self

    def get_min_unspents(self, group: ChainCodeGroup) -> int:
        return self.min_unspents.get(group.name, 0)

    def get_max_unspents(self, group: ChainCodeGroup) -> int | None:
        return self.max_unspents.get(group.name)


def _pure_group(name: str, group_name: str, count: int = 3) -> GroupConfig:
    others = [g.name for g in CHAIN_CODE_GROUPS if g.name != get_group(group_name).name]
    return GroupConfig(
        name=name,
        min_unspents={group_name: count},
        max_unspents={group_name: None, **{other: 0 for other in others}},
    )


GROUP_PURE_P2SH = _pure_group("pure_p2sh", "p2sh")
GROUP_PURE_P2SH_P2WSH = _pure_group("pure_p2sh_p2wsh", "p2shP2wsh")
GROUP_PURE_P2WSH = _pure_group("pure_p2wsh", "p2wsh")

GROUP_PRESETS: dict[str, GroupConfig] = {
    g.name: g for g in (GROUP_PURE_P2SH, GROUP_PURE_P2SH_P2WSH, GROUP_PURE_P2WSH)
}


def get_group_config(name: str) -> GroupConfig:
    if name not in GROUP_PRESETS:
        raise ConfigurationError(
            f"unknown wallet group {name!r}, expected one of {sorted(GROUP_PRESETS)}"
        )
    return GROUP_PRESETS[name]


class PoolSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MW_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    pool_size: int = Field(default=DEFAULT_POOL_SIZE, ge=1)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    remote_timeout: float = Field(default=DEFAULT_REMOTE_TIMEOUT, gt=0)
    send_timeout: float = Field(default=DEFAULT_SEND_TIMEOUT, gt=0)
    fee_rate: int = Field(default=DEFAULT_FEE_RATE, ge=1)

    access_token: str = ""
    api_url: str | None = None
    coin: str = "tbtc"

    log_level: str = "INFO"


def load_settings(**overrides: object) -> PoolSettings:
    """
    Load settings from the environment, applying explicit overrides.

    Raises:
        ConfigurationError: If a value (e.g. MW_POOL_SIZE) is invalid
    """
    try:
        return PoolSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(f"invalid pool settings: {e}") from e


def resolve_api_url(env: str, settings: PoolSettings) -> str:
    """Map an environment name to the wallet service URL"""
    if env not in ENVIRONMENT_URLS:
        raise ConfigurationError(
            f"unsupported env {env!r}, expected one of {sorted(ENVIRONMENT_URLS)}"
        )
    return settings.api_url or ENVIRONMENT_URLS[env]


def get_passphrase() -> str:
    """Passphrase of all managed wallets, derived from a fixed seed"""
    return hashlib.sha256(PASSPHRASE_SEED).hexdigest()
