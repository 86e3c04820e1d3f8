"""Static fee schedule for cw1-subkeys operations."""

from __future__ import annotations

import math
from dataclasses import dataclass

from .options import Options
from .types import Coin

UPLOAD_GAS = 1500000
INIT_GAS = 600000
MIGRATE_GAS = 600000
EXEC_GAS = 200000
SEND_GAS = 80000
CHANGE_ADMIN_GAS = 80000


@dataclass(frozen=True)
class StdFee:
    amount: tuple[Coin, ...]
    gas: str

    @property
    def gas_limit(self) -> int:
        return int(self.gas)

    def to_cosmpy(self) -> str:
        """Fee string as cosmpy's Transaction.seal expects it, e.g. ``5000ushell``."""
        return ",".join(f"{coin.amount}{coin.denom}" for coin in self.amount)


def std_fee(gas: int, denom: str, price: float) -> StdFee:
    amount = math.floor(gas * price)
    return StdFee(amount=(Coin.of(denom, amount),), gas=str(gas))


@dataclass(frozen=True)
class FeeTable:
    upload: StdFee
    init: StdFee
    migrate: StdFee
    exec: StdFee
    send: StdFee
    change_admin: StdFee


def build_fee_table(options: Options) -> FeeTable:
    denom, price = options.fee_token, options.gas_price
    return FeeTable(
        upload=std_fee(UPLOAD_GAS, denom, price),
        init=std_fee(INIT_GAS, denom, price),
        migrate=std_fee(MIGRATE_GAS, denom, price),
        exec=std_fee(EXEC_GAS, denom, price),
        send=std_fee(SEND_GAS, denom, price),
        change_admin=std_fee(CHANGE_ADMIN_GAS, denom, price),
    )
