"""
cw1-subkeys contract helpers.

``CW1Contract`` uploads and instantiates the contract or binds to an existing
instance; ``CW1Instance`` turns typed calls into the contract's query and
execute messages.

Every execute returns only the transaction hash. State lives on chain, so
re-query ``admins()`` / ``allowance()`` to observe the effect of a call.

Demo::

    client = setup(PASSWORD)
    factory = CW1Contract(client)

    code_id = factory.upload()
    contract = factory.instantiate(code_id, InitMsg(admins=[client.sender_address], mutable=True), "My Proxy")
    # or: contract = factory.use("coral1267wq2zk22kt5juypdczw3k4wxhc4z47mug9fd")

    contract.increase_allowance(spender, Coin.of("ushell", 123456))
    contract.decrease_allowance(spender, Coin.of("ushell", 3456), AtHeight(500000))
    contract.allowance(spender)

    client.send_tokens(contract.contract_address, [Coin.of("ushell", 500000)])
    contract.execute([BankSend(contract.contract_address, client.sender_address, [Coin.of("ushell", 440000)])])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Optional, Sequence

import httpx

from .client import SigningClient
from .exceptions import ArtifactFetchError
from .types import (
    AdminListResponse,
    AllowanceResponse,
    Coin,
    CosmosMsg,
    Expiration,
    InitMsg,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactSource:
    url: str
    source: str
    builder: str
    # hex sha256 of the wasm; skipped when empty
    checksum: str = ""

    @property
    def meta(self) -> dict[str, str]:
        return {"source": self.source, "builder": self.builder}


CW1_SUBKEYS_V0_1_1 = ArtifactSource(
    url="https://github.com/CosmWasm/cosmwasm-plus/releases/download/v0.1.1/cw1_subkeys.wasm",
    source="https://github.com/CosmWasm/cosmwasm-plus/tree/v0.1.1/contracts/cw1-subkeys",
    builder="cosmwasm/rust-optimizer:0.10.1",
)


def download_wasm(url: str, http_client: Optional[httpx.Client] = None) -> bytes:
    try:
        if http_client is None:
            with httpx.Client(timeout=60) as http:
                r = http.get(url, follow_redirects=True)
        else:
            r = http_client.get(url, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise ArtifactFetchError(f"Download error: {exc}") from exc
    if r.status_code != 200:
        raise ArtifactFetchError(f"Download error: {r.status_code}")
    return r.content


def _with_expires(body: dict, expires: Optional[Expiration]) -> dict:
    if expires is not None:
        body["expires"] = expires.to_json()
    return body


@dataclass(frozen=True)
class CW1Instance:
    contract_address: str
    client: SigningClient = field(repr=False)

    # queries

    def allowance(self, spender: Optional[str] = None) -> AllowanceResponse:
        spender = spender or self.client.sender_address
        result = self.client.query_contract_smart(
            self.contract_address, {"allowance": {"spender": spender}}
        )
        return AllowanceResponse.from_json(result or {})

    def admins(self) -> AdminListResponse:
        result = self.client.query_contract_smart(self.contract_address, {"admin_list": {}})
        return AdminListResponse.from_json(result)

    # actions

    def freeze(self) -> str:
        """Make the admin set immutable. Admin only, and cannot be undone."""
        result = self.client.execute(self.contract_address, {"freeze": {}})
        return result.transaction_hash

    def update_admins(self, admins: Sequence[str]) -> str:
        """
        Replace the whole admin set.

        The list is sent as given: passing an empty list leaves the contract
        without admins for good.
        """
        result = self.client.execute(
            self.contract_address, {"update_admins": {"admins": list(admins)}}
        )
        return result.transaction_hash

    def execute(self, msgs: Sequence[CosmosMsg]) -> str:
        result = self.client.execute(
            self.contract_address, {"execute": {"msgs": [msg.to_json() for msg in msgs]}}
        )
        return result.transaction_hash

    def increase_allowance(
        self, spender: str, amount: Coin, expires: Optional[Expiration] = None
    ) -> str:
        body = _with_expires({"spender": spender, "amount": amount.to_json()}, expires)
        result = self.client.execute(self.contract_address, {"increase_allowance": body})
        return result.transaction_hash

    def decrease_allowance(
        self, spender: str, amount: Coin, expires: Optional[Expiration] = None
    ) -> str:
        body = _with_expires({"spender": spender, "amount": amount.to_json()}, expires)
        result = self.client.execute(self.contract_address, {"decrease_allowance": body})
        return result.transaction_hash


class CW1Contract:
    def __init__(
        self,
        client: SigningClient,
        artifact: ArtifactSource = CW1_SUBKEYS_V0_1_1,
        http_client: Optional[httpx.Client] = None,
    ):
        self.client = client
        self.artifact = artifact
        self._http = http_client

    def upload(self) -> int:
        """Store the cw1-subkeys wasm on chain and return its code id."""
        wasm = download_wasm(self.artifact.url, self._http)
        if self.artifact.checksum:
            digest = sha256(wasm).hexdigest()
            if digest != self.artifact.checksum.lower():
                raise ArtifactFetchError(
                    f"Checksum mismatch for {self.artifact.url}: {digest}"
                )
        result = self.client.upload(wasm, self.artifact.meta)
        return result.code_id

    def instantiate(
        self,
        code_id: int,
        init_msg: InitMsg,
        label: str,
        admin: Optional[str] = None,
    ) -> CW1Instance:
        """
        Create a new contract from ``code_id``.

        ``label`` is the public name of the contract in listings. ``admin``,
        if set, may migrate the contract later (likely ``client.sender_address``);
        it is unrelated to the contract's own admin list.
        """
        result = self.client.instantiate(
            code_id, init_msg.to_json(), label, memo=f"Init {label}", admin=admin
        )
        return self.use(result.contract_address)

    def use(self, contract_address: str) -> CW1Instance:
        return CW1Instance(contract_address=contract_address, client=self.client)
