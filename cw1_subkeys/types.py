"""
Typed messages and responses of the cw1-subkeys contract.

Every type renders to (and where it comes back from the node, parses from)
the exact JSON the contract expects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_DECIMAL = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: str

    def __post_init__(self):
        if not self.denom:
            raise ValueError("Coin denom cannot be empty")
        if not isinstance(self.amount, str) or not _DECIMAL.fullmatch(self.amount):
            raise ValueError(
                f"Coin amount must be a non-negative decimal string, got {self.amount!r}"
            )

    @classmethod
    def of(cls, denom: str, amount: int) -> "Coin":
        return cls(denom=denom, amount=str(amount))

    def to_json(self) -> dict[str, str]:
        return {"denom": self.denom, "amount": self.amount}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Coin":
        return cls(denom=data["denom"], amount=str(data["amount"]))


def _non_negative_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")


class Expiration:
    """Base of the at_height / at_time / never variants."""

    def to_json(self) -> dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def from_json(data: dict[str, Any]) -> "Expiration":
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"Expiration must have exactly one variant, got {data!r}")
        try:
            if "at_height" in data:
                return AtHeight(height=int(data["at_height"]["height"]))
            if "at_time" in data:
                return AtTime(time=int(data["at_time"]["time"]))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed expiration: {data!r}") from exc
        if "never" in data:
            return Never()
        raise ValueError(f"Unknown expiration variant: {data!r}")


@dataclass(frozen=True)
class AtHeight(Expiration):
    height: int

    def __post_init__(self):
        _non_negative_int("height", self.height)

    def to_json(self) -> dict[str, Any]:
        return {"at_height": {"height": self.height}}


@dataclass(frozen=True)
class AtTime(Expiration):
    time: int

    def __post_init__(self):
        _non_negative_int("time", self.time)

    def to_json(self) -> dict[str, Any]:
        return {"at_time": {"time": self.time}}


@dataclass(frozen=True)
class Never(Expiration):
    def to_json(self) -> dict[str, Any]:
        return {"never": {}}


class CosmosMsg:
    """
    A message the proxy contract dispatches on behalf of the caller.

    Only bank sends are modeled. Support for another action is added as a
    new subclass with its own to_json.
    """

    def to_json(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class BankSend(CosmosMsg):
    from_address: str
    to_address: str
    amount: tuple[Coin, ...]

    def __post_init__(self):
        object.__setattr__(self, "amount", tuple(self.amount))

    def to_json(self) -> dict[str, Any]:
        return {
            "bank": {
                "send": {
                    "from_address": self.from_address,
                    "to_address": self.to_address,
                    "amount": [coin.to_json() for coin in self.amount],
                }
            }
        }


@dataclass
class InitMsg:
    admins: list[str]
    mutable: bool

    def to_json(self) -> dict[str, Any]:
        return {"admins": list(self.admins), "mutable": self.mutable}


@dataclass
class AdminListResponse:
    admins: list[str]
    mutable: bool

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AdminListResponse":
        return cls(admins=list(data.get("admins") or []), mutable=bool(data["mutable"]))


@dataclass
class AllowanceResponse:
    balance: list[Coin] = field(default_factory=list)
    expires: Expiration = field(default_factory=Never)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AllowanceResponse":
        # an unknown spender comes back with an empty balance
        balance = [Coin.from_json(c) for c in (data.get("balance") or [])]
        expires = data.get("expires")
        return cls(
            balance=balance,
            expires=Expiration.from_json(expires) if expires else Never(),
        )

    def amount_of(self, denom: str) -> int:
        return sum(int(c.amount) for c in self.balance if c.denom == denom)

    def to_json(self) -> dict[str, Any]:
        return {
            "balance": [c.to_json() for c in self.balance],
            "expires": self.expires.to_json(),
        }
