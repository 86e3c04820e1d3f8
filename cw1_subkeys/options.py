"""
Network options for the cw1-subkeys client.

Options come either from the built-in coralnet preset or from a per-chain
TOML file under ``configs/`` (``configs/<chain>.toml``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import toml

from .exceptions import ConfigError


@dataclass(frozen=True)
class Options:
    rest_url: str
    chain_id: str
    fee_token: str
    gas_price: float
    bech32_prefix: str
    default_key_file: str
    faucet_token: str = ""
    faucet_url: Optional[str] = None
    rpc_url: Optional[str] = None
    permissioned_uploader_address: Optional[str] = None
    # address index of m/44'/118'/0'/0/{hd_index}
    hd_index: int = 0
    tx_poll_interval: float = 2.0
    tx_poll_timeout: float = 60.0

    @property
    def key_file(self) -> str:
        return os.path.expanduser(self.default_key_file)


CORALNET_OPTIONS = Options(
    rest_url="https://lcd.coralnet.cosmwasm.com",
    chain_id="cosmwasm-coral",
    fee_token="ushell",
    gas_price=0.025,
    bech32_prefix="coral",
    faucet_token="SHELL",
    faucet_url="https://faucet.coralnet.cosmwasm.com/credit",
    default_key_file=os.path.join("~", ".coral.key"),
)

_REQUIRED_KEYS = ("REST_URL", "CHAIN_ID", "FEE_TOKEN", "GAS_PRICE", "ADDRESS_PREFIX")


def options_from_config(config: dict, chain: str) -> Options:
    missing = [key for key in _REQUIRED_KEYS if key not in config]
    if missing:
        raise ConfigError(f"Config for chain {chain} is missing keys: {', '.join(missing)}")

    return Options(
        rest_url=config["REST_URL"].rstrip("/"),
        rpc_url=config.get("RPC_URL"),
        permissioned_uploader_address=config.get("PERMISSIONED_UPLOADER_ADDRESS"),
        chain_id=config["CHAIN_ID"],
        fee_token=config["FEE_TOKEN"],
        gas_price=float(config["GAS_PRICE"]),
        bech32_prefix=config["ADDRESS_PREFIX"],
        hd_index=int(config.get("HD_INDEX", 0)),
        faucet_token=config.get("FAUCET_TOKEN", ""),
        faucet_url=config.get("FAUCET_URL"),
        default_key_file=config.get("KEY_FILE", os.path.join("~", f".{chain}.key")),
        tx_poll_interval=float(config.get("TX_POLL_INTERVAL", 2.0)),
        tx_poll_timeout=float(config.get("TX_POLL_TIMEOUT", 60.0)),
    )


def load_options(chain: str, configs_dir: str = "configs") -> Options:
    """Load ``<configs_dir>/<chain>.toml``; raises ConfigError if there is none."""
    if not os.path.isdir(configs_dir):
        raise ConfigError(f"Config folder {configs_dir} does not exist")

    # Match the chain to the file name in the configs folder
    for file in os.listdir(configs_dir):
        if file == f"{chain}.toml":
            config = toml.load(os.path.join(configs_dir, file))
            return options_from_config(config, chain)

    raise ConfigError(f"Could not find config for chain {chain} in {configs_dir}")
