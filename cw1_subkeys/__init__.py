"""Client helpers for the cw1-subkeys proxy contract."""

from .client import SigningClient, connect, hit_faucet, setup
from .contract import CW1_SUBKEYS_V0_1_1, ArtifactSource, CW1Contract, CW1Instance
from .exceptions import (
    ArtifactFetchError,
    ConfigError,
    Cw1Error,
    RemoteExecutionError,
    RemoteQueryError,
    WalletError,
)
from .fees import FeeTable, StdFee, build_fee_table
from .options import CORALNET_OPTIONS, Options, load_options
from .types import (
    AdminListResponse,
    AllowanceResponse,
    AtHeight,
    AtTime,
    BankSend,
    Coin,
    CosmosMsg,
    Expiration,
    InitMsg,
    Never,
)
from .wallet import load_or_create_wallet, recover_mnemonic

__version__ = "0.1.1"

__all__ = [
    "AdminListResponse",
    "AllowanceResponse",
    "ArtifactFetchError",
    "ArtifactSource",
    "AtHeight",
    "AtTime",
    "BankSend",
    "CORALNET_OPTIONS",
    "CW1Contract",
    "CW1Instance",
    "CW1_SUBKEYS_V0_1_1",
    "Coin",
    "ConfigError",
    "CosmosMsg",
    "Cw1Error",
    "Expiration",
    "FeeTable",
    "InitMsg",
    "Never",
    "Options",
    "RemoteExecutionError",
    "RemoteQueryError",
    "SigningClient",
    "StdFee",
    "WalletError",
    "build_fee_table",
    "connect",
    "hit_faucet",
    "load_options",
    "load_or_create_wallet",
    "recover_mnemonic",
    "setup",
]
