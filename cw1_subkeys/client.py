"""
Signing client for CosmWasm contracts.

Builds, signs and broadcasts wasm transactions with cosmpy, and runs smart
queries against a node. Broadcasting goes through the node's Tendermint
JSON-RPC endpoint when one is configured, otherwise through the REST
gateway; inclusion is always confirmed via the REST tx endpoint.
"""

from __future__ import annotations

import json
import logging
import time
from base64 import b64encode
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Optional, Sequence

import httpx
from google.protobuf import any_pb2
from grpc import RpcError

from cosmpy.aerial.client import LedgerClient, NetworkConfig
from cosmpy.aerial.tx import SigningCfg, Transaction
from cosmpy.aerial.wallet import LocalWallet
from cosmpy.common.utils import json_encode
from cosmpy.protos.cosmos.authz.v1beta1.tx_pb2 import MsgExec
from cosmpy.protos.cosmos.bank.v1beta1.tx_pb2 import MsgSend
from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin as CoinProto
from cosmpy.protos.cosmwasm.wasm.v1.query_pb2 import QuerySmartContractStateRequest
from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import (
    MsgExecuteContract,
    MsgInstantiateContract,
    MsgMigrateContract,
    MsgStoreCode,
    MsgUpdateAdmin,
)

from .exceptions import RemoteExecutionError, RemoteQueryError
from .fees import FeeTable, StdFee, build_fee_table
from .options import CORALNET_OPTIONS, Options
from .types import Coin
from .wallet import load_or_create_wallet

logger = logging.getLogger(__name__)

# errors raised by cosmpy's REST (requests) and gRPC query clients
_LEDGER_ERRORS = (RuntimeError, RpcError, OSError, ValueError)


@dataclass
class ExecuteResult:
    transaction_hash: str
    tx_response: dict[str, Any]


@dataclass
class UploadResult:
    code_id: int
    transaction_hash: str


@dataclass
class InstantiateResult:
    contract_address: str
    transaction_hash: str


def get_attribute_value(tx_response: dict[str, Any], event_type: str, attr_key: str) -> Optional[str]:
    """Find ``attr_key`` of the first ``event_type`` event in a tx response."""
    logs = tx_response.get("logs") or []
    if logs:
        events = logs[0].get("events", [])
    else:
        events = tx_response.get("events", [])

    for event in events:
        if event["type"] == event_type:
            for attr in event["attributes"]:
                if attr["key"] == attr_key:
                    return attr["value"]
    return None


def create_any_msg(msg) -> any_pb2.Any:
    any_msg = any_pb2.Any()
    any_msg.Pack(msg, "")
    return any_msg


def create_exec_msg(msg, grantee_address: str) -> MsgExec:
    """Wrap ``msg`` in an authz MsgExec signed by ``grantee_address``."""
    return MsgExec(grantee=grantee_address, msgs=[create_any_msg(msg)])


def _coins_to_proto(coins: Sequence[Coin]) -> list[CoinProto]:
    return [CoinProto(denom=coin.denom, amount=coin.amount) for coin in coins]


class SigningClient:
    def __init__(
        self,
        ledger: LedgerClient,
        wallet: LocalWallet,
        options: Options,
        fee_table: Optional[FeeTable] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self._ledger = ledger
        self._wallet = wallet
        self._options = options
        self.fee_table = fee_table or build_fee_table(options)
        self._http = http_client or httpx.Client(timeout=60)

    @property
    def sender_address(self) -> str:
        return str(self._wallet.address())

    @property
    def options(self) -> Options:
        return self._options

    # -- queries -------------------------------------------------------------

    def get_balance(self, address: Optional[str] = None) -> list[Coin]:
        address = address or self.sender_address
        try:
            balances = self._ledger.query_bank_all_balances(address)
        except _LEDGER_ERRORS as exc:
            raise RemoteQueryError(f"Balance query for {address} failed: {exc}") from exc
        return [Coin.of(balance.denom, int(balance.amount)) for balance in balances]

    def query_contract_smart(self, contract_address: str, query: dict[str, Any]) -> Any:
        request = QuerySmartContractStateRequest(
            address=contract_address,
            query_data=json_encode(query).encode("UTF8"),
        )
        try:
            response = self._ledger.wasm.SmartContractState(request)
            return json.loads(response.data)
        except _LEDGER_ERRORS as exc:
            raise RemoteQueryError(
                f"Query {list(query)} on {contract_address} failed: {exc}"
            ) from exc

    # -- transactions ----------------------------------------------------------

    def execute(
        self,
        contract_address: str,
        msg: dict[str, Any],
        memo: str = "",
        funds: Optional[Sequence[Coin]] = None,
    ) -> ExecuteResult:
        execute_msg = MsgExecuteContract(
            sender=self.sender_address,
            contract=contract_address,
            msg=json_encode(msg).encode("UTF8"),
            funds=_coins_to_proto(funds or []),
        )
        tx_hash, tx_response = self._sign_and_broadcast(execute_msg, self.fee_table.exec, memo)
        return ExecuteResult(transaction_hash=tx_hash, tx_response=tx_response)

    def upload(
        self,
        wasm_byte_code: bytes,
        meta: Optional[dict[str, str]] = None,
        memo: str = "",
    ) -> UploadResult:
        # wasm v1 MsgStoreCode has no source/builder fields, so metadata is only logged
        if meta:
            logger.info("Uploading code built by %s from %s", meta.get("builder"), meta.get("source"))
        uploader = self._options.permissioned_uploader_address
        if uploader:
            # chains with permissioned uploads: the uploader granted us MsgStoreCode via authz
            msg_store_code = MsgStoreCode(
                sender=uploader,
                wasm_byte_code=wasm_byte_code,
                instantiate_permission=None,
            )
            msg = create_exec_msg(msg=msg_store_code, grantee_address=self.sender_address)
        else:
            msg = MsgStoreCode(
                sender=self.sender_address,
                wasm_byte_code=wasm_byte_code,
                instantiate_permission=None,
            )
        tx_hash, tx_response = self._sign_and_broadcast(msg, self.fee_table.upload, memo)
        code_id = get_attribute_value(tx_response, "store_code", "code_id")
        if code_id is None:
            raise RemoteExecutionError("Upload response has no code_id", tx_hash=tx_hash)
        logger.info("Stored code id %s (tx %s)", code_id, tx_hash)
        return UploadResult(code_id=int(code_id), transaction_hash=tx_hash)

    def instantiate(
        self,
        code_id: int,
        init_msg: dict[str, Any],
        label: str,
        memo: str = "",
        admin: Optional[str] = None,
    ) -> InstantiateResult:
        msg = MsgInstantiateContract(
            sender=self.sender_address,
            admin=admin or "",
            code_id=code_id,
            msg=json_encode(init_msg).encode("UTF8"),
            label=label,
        )
        tx_hash, tx_response = self._sign_and_broadcast(msg, self.fee_table.init, memo)
        contract_address = get_attribute_value(tx_response, "instantiate", "_contract_address")
        if contract_address is None:
            raise RemoteExecutionError("Instantiate response has no contract address", tx_hash=tx_hash)
        logger.info("Instantiated %s at %s (tx %s)", label, contract_address, tx_hash)
        return InstantiateResult(contract_address=contract_address, transaction_hash=tx_hash)

    def migrate(
        self,
        contract_address: str,
        code_id: int,
        migrate_msg: dict[str, Any],
        memo: str = "",
    ) -> ExecuteResult:
        msg = MsgMigrateContract(
            sender=self.sender_address,
            contract=contract_address,
            code_id=code_id,
            msg=json_encode(migrate_msg).encode("UTF8"),
        )
        tx_hash, tx_response = self._sign_and_broadcast(msg, self.fee_table.migrate, memo)
        return ExecuteResult(transaction_hash=tx_hash, tx_response=tx_response)

    def update_admin(self, contract_address: str, new_admin: str, memo: str = "") -> ExecuteResult:
        """Change the chain-level (migration) admin of a contract."""
        msg = MsgUpdateAdmin(
            sender=self.sender_address,
            new_admin=new_admin,
            contract=contract_address,
        )
        tx_hash, tx_response = self._sign_and_broadcast(msg, self.fee_table.change_admin, memo)
        return ExecuteResult(transaction_hash=tx_hash, tx_response=tx_response)

    def send_tokens(self, recipient: str, amount: Sequence[Coin], memo: str = "") -> ExecuteResult:
        msg = MsgSend(
            from_address=self.sender_address,
            to_address=recipient,
            amount=_coins_to_proto(amount),
        )
        tx_hash, tx_response = self._sign_and_broadcast(msg, self.fee_table.send, memo)
        return ExecuteResult(transaction_hash=tx_hash, tx_response=tx_response)

    # -- internals -------------------------------------------------------------

    def _create_tx(self, msg, fee: StdFee, memo: str) -> Transaction:
        tx = Transaction()
        tx.add_message(msg)

        try:
            account = self._ledger.query_account(self.sender_address)
        except _LEDGER_ERRORS as exc:
            raise RemoteExecutionError(
                f"Could not load account {self.sender_address}: {exc}"
            ) from exc

        # Seal, Sign, and Complete Tx
        tx.seal(
            signing_cfgs=[SigningCfg.direct(self._wallet.public_key(), account.sequence)],
            fee=fee.to_cosmpy(),
            gas_limit=fee.gas_limit,
            memo=memo,
        )
        tx.sign(self._wallet.signer(), self._options.chain_id, account.number)
        tx.complete()
        return tx

    def _sign_and_broadcast(self, msg, fee: StdFee, memo: str) -> tuple[str, dict[str, Any]]:
        tx = self._create_tx(msg, fee, memo)
        tx_bytes = tx.tx.SerializeToString()
        tx_hash = sha256(tx_bytes).hexdigest().upper()
        logger.info("Broadcasting %s (tx %s)", type(msg).__name__, tx_hash)

        try:
            self._broadcast(tx_bytes, tx_hash)
            tx_response = self._wait_for_tx(tx_hash)
        except httpx.HTTPError as exc:
            raise RemoteExecutionError(f"Broadcast of tx {tx_hash} failed: {exc}", tx_hash=tx_hash) from exc

        code = int(tx_response.get("code", 0))
        if code != 0:
            raw_log = tx_response.get("raw_log", "")
            raise RemoteExecutionError(
                f"Tx {tx_hash} failed with code {code}: {raw_log}",
                tx_hash=tx_hash,
                code=code,
                raw_log=raw_log,
            )
        return tx_hash, tx_response

    def _broadcast(self, tx_bytes: bytes, tx_hash: str) -> None:
        encoded_tx = b64encode(tx_bytes).decode("utf-8")

        if self._options.rpc_url:
            data = {
                "jsonrpc": "2.0",
                "method": "broadcast_tx_sync",
                "params": [encoded_tx],
                "id": 1,
            }
            resp = self._http.post(self._options.rpc_url, json=data)
            resp.raise_for_status()
            body = resp.json()
            if "error" in body:
                raise RemoteExecutionError(f"Broadcast of tx {tx_hash} rejected: {body['error']}", tx_hash=tx_hash)
            result = body["result"]
            code, raw_log = int(result.get("code", 0)), result.get("log", "")
        else:
            resp = self._http.post(
                f"{self._options.rest_url}/cosmos/tx/v1beta1/txs",
                json={"tx_bytes": encoded_tx, "mode": "BROADCAST_MODE_SYNC"},
            )
            resp.raise_for_status()
            result = resp.json()["tx_response"]
            code, raw_log = int(result.get("code", 0)), result.get("raw_log", "")

        # CheckTx rejection: the tx never reaches a block
        if code != 0:
            raise RemoteExecutionError(
                f"Tx {tx_hash} rejected with code {code}: {raw_log}",
                tx_hash=tx_hash,
                code=code,
                raw_log=raw_log,
            )

    def _wait_for_tx(self, tx_hash: str) -> dict[str, Any]:
        url = f"{self._options.rest_url}/cosmos/tx/v1beta1/txs/{tx_hash}"
        deadline = time.monotonic() + self._options.tx_poll_timeout
        while True:
            resp = self._http.get(url)
            if resp.status_code == 200:
                return resp.json()["tx_response"]
            if resp.status_code != 404:
                raise RemoteExecutionError(
                    f"Tx {tx_hash} lookup failed with status {resp.status_code}",
                    tx_hash=tx_hash,
                )
            if time.monotonic() >= deadline:
                raise RemoteExecutionError(
                    f"Tx {tx_hash} not included after {self._options.tx_poll_timeout}s",
                    tx_hash=tx_hash,
                )
            logger.debug("Tx %s not found yet (status %s)", tx_hash, resp.status_code)
            time.sleep(self._options.tx_poll_interval)


def connect(
    wallet: LocalWallet,
    options: Options,
    http_client: Optional[httpx.Client] = None,
) -> SigningClient:
    cfg = NetworkConfig(
        chain_id=options.chain_id,
        url=f"rest+{options.rest_url}",
        fee_minimum_gas_price=options.gas_price,
        fee_denomination=options.fee_token,
        staking_denomination=options.fee_token,
    )
    return SigningClient(
        LedgerClient(cfg),
        wallet,
        options,
        fee_table=build_fee_table(options),
        http_client=http_client,
    )


def hit_faucet(
    faucet_url: str,
    address: str,
    ticker: str,
    http_client: Optional[httpx.Client] = None,
) -> None:
    payload = {"ticker": ticker, "address": address}
    if http_client is None:
        with httpx.Client(timeout=60) as http:
            resp = http.post(faucet_url, json=payload)
    else:
        resp = http_client.post(faucet_url, json=payload)
    resp.raise_for_status()


def setup(
    password: str,
    filename: Optional[str] = None,
    options: Options = CORALNET_OPTIONS,
    http_client: Optional[httpx.Client] = None,
) -> SigningClient:
    """
    Open (or create) the keyfile and return a connected signing client.

    If the options name a faucet and the account holds nothing yet, the
    faucet is asked for fee tokens once.
    """
    keyfile = filename or options.key_file
    identity = load_or_create_wallet(options, keyfile, password)
    client = connect(identity.wallet, options, http_client=http_client)

    # ensure we have some tokens
    if options.faucet_url:
        if not client.get_balance():
            logger.info("Getting %s from faucet", options.fee_token)
            hit_faucet(options.faucet_url, client.sender_address, options.faucet_token, http_client)

    return client
