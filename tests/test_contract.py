import dataclasses
from hashlib import sha256

import httpx
import pytest

from cw1_subkeys import contract as contract_module
from cw1_subkeys.contract import ArtifactSource, CW1Contract, CW1_SUBKEYS_V0_1_1, download_wasm
from cw1_subkeys.exceptions import ArtifactFetchError, RemoteExecutionError, RemoteQueryError
from cw1_subkeys.types import (
    AdminListResponse,
    AtHeight,
    AtTime,
    BankSend,
    Coin,
    InitMsg,
    Never,
)

from .fakes import ADMIN, OTHER, SPENDER

WASM = b"\x00asm\x01\x00\x00\x00"


def wasm_server(status=200, body=WASM):
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(status, content=body)

    return httpx.Client(transport=httpx.MockTransport(handler)), requested


@pytest.fixture
def factory(fake_client):
    http, _ = wasm_server()
    return CW1Contract(fake_client, http_client=http)


@pytest.fixture
def contract(factory):
    code_id = factory.upload()
    return factory.instantiate(code_id, InitMsg(admins=[ADMIN], mutable=True), "My Proxy")


class TestLifecycle:
    def test_upload_downloads_fixed_artifact(self, fake_client):
        http, requested = wasm_server()
        code_id = CW1Contract(fake_client, http_client=http).upload()

        assert requested == [CW1_SUBKEYS_V0_1_1.url]
        assert fake_client.codes[code_id] == (WASM, CW1_SUBKEYS_V0_1_1.meta)

    def test_upload_rejects_non_200(self, fake_client):
        http, _ = wasm_server(status=404)
        with pytest.raises(ArtifactFetchError, match="404"):
            CW1Contract(fake_client, http_client=http).upload()
        assert fake_client.codes == {}

    def test_upload_checks_checksum(self, fake_client):
        http, _ = wasm_server()
        good = ArtifactSource(url="https://example.com/a.wasm", source="s", builder="b",
                              checksum=sha256(WASM).hexdigest())
        bad = ArtifactSource(url="https://example.com/a.wasm", source="s", builder="b",
                             checksum="00" * 32)

        assert CW1Contract(fake_client, artifact=good, http_client=http).upload() == 1
        with pytest.raises(ArtifactFetchError, match="Checksum mismatch"):
            CW1Contract(fake_client, artifact=bad, http_client=http).upload()

    def test_instantiate_passes_label_memo_and_admin(self, factory, fake_client):
        code_id = factory.upload()
        instance = factory.instantiate(
            code_id, InitMsg(admins=[ADMIN], mutable=False), "My Proxy", admin=ADMIN
        )

        state = fake_client.contracts[instance.contract_address]
        assert state["label"] == "My Proxy"
        assert state["memo"] == "Init My Proxy"
        assert state["admin"] == ADMIN
        assert instance.client is fake_client

    def test_instantiate_unknown_code_fails(self, factory):
        with pytest.raises(RemoteExecutionError):
            factory.instantiate(99, InitMsg(admins=[ADMIN], mutable=True), "x")

    def test_instance_address_cannot_be_rebound(self, factory):
        instance = factory.use("coral1a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            instance.contract_address = "coral1b"
        assert instance.contract_address == "coral1a"

    def test_download_closes_its_own_client(self, monkeypatch):
        opened = []
        real_client = httpx.Client

        def make_client(**kwargs):
            http = real_client(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=WASM)))
            opened.append(http)
            return http

        monkeypatch.setattr(contract_module.httpx, "Client", make_client)

        assert download_wasm("https://example.com/a.wasm") == WASM
        assert len(opened) == 1
        assert opened[0].is_closed

    def test_use_does_not_validate(self, factory, fake_client):
        instance = factory.use("coral1nothinghere")
        assert instance.contract_address == "coral1nothinghere"
        assert fake_client.queries == []
        with pytest.raises(RemoteQueryError):
            instance.admins()


class TestWireMessages:
    def test_queries(self, contract, fake_client):
        contract.admins()
        contract.allowance(SPENDER)
        contract.allowance()

        assert [q for _, q in fake_client.queries] == [
            {"admin_list": {}},
            {"allowance": {"spender": SPENDER}},
            {"allowance": {"spender": ADMIN}},
        ]

    def test_executes(self, contract, fake_client):
        contract.increase_allowance(SPENDER, Coin.of("tok", 10))
        contract.increase_allowance(SPENDER, Coin.of("tok", 10), AtTime(1700000000))
        contract.decrease_allowance(SPENDER, Coin.of("tok", 5), AtHeight(500000))
        contract.execute([BankSend(contract.contract_address, OTHER, [Coin.of("tok", 1)])])
        contract.update_admins([ADMIN, OTHER])
        contract.freeze()

        assert [m for _, m in fake_client.executed] == [
            {"increase_allowance": {"spender": SPENDER, "amount": {"denom": "tok", "amount": "10"}}},
            {"increase_allowance": {
                "spender": SPENDER,
                "amount": {"denom": "tok", "amount": "10"},
                "expires": {"at_time": {"time": 1700000000}},
            }},
            {"decrease_allowance": {
                "spender": SPENDER,
                "amount": {"denom": "tok", "amount": "5"},
                "expires": {"at_height": {"height": 500000}},
            }},
            {"execute": {"msgs": [{"bank": {"send": {
                "from_address": contract.contract_address,
                "to_address": OTHER,
                "amount": [{"denom": "tok", "amount": "1"}],
            }}}]}},
            {"update_admins": {"admins": [ADMIN, OTHER]}},
            {"freeze": {}},
        ]

    def test_executes_return_tx_hash(self, contract):
        tx_hash = contract.freeze()
        assert isinstance(tx_hash, str)
        assert len(tx_hash) == 64

    def test_empty_admin_list_is_passed_through(self, contract, fake_client):
        contract.update_admins([])
        assert fake_client.executed[-1][1] == {"update_admins": {"admins": []}}
        assert contract.admins().admins == []


class TestAllowances:
    def test_unknown_spender_has_empty_allowance(self, contract):
        allowance = contract.allowance(OTHER)
        assert allowance.balance == []
        assert allowance.expires == Never()
        assert allowance.amount_of("tok") == 0

    def test_increase_then_query(self, contract):
        contract.increase_allowance(SPENDER, Coin(denom="x", amount="100"))
        assert Coin(denom="x", amount="100") in contract.allowance(SPENDER).balance

    def test_increase_then_decrease_same_amount(self, contract):
        contract.increase_allowance(SPENDER, Coin.of("x", 100))
        contract.decrease_allowance(SPENDER, Coin.of("x", 100))
        assert contract.allowance(SPENDER).amount_of("x") == 0

    def test_over_decrease_is_rejected_and_balance_kept(self, contract):
        contract.increase_allowance(SPENDER, Coin.of("x", 100))
        with pytest.raises(RemoteExecutionError):
            contract.decrease_allowance(SPENDER, Coin.of("x", 101), AtHeight(5))

        allowance = contract.allowance(SPENDER)
        assert allowance.amount_of("x") == 100
        assert allowance.expires == Never()

    def test_denoms_are_tracked_separately(self, contract):
        contract.increase_allowance(SPENDER, Coin.of("ushell", 123456))
        contract.increase_allowance(SPENDER, Coin.of("ureef", 5000))
        contract.decrease_allowance(SPENDER, Coin.of("ushell", 3456), AtHeight(500000))

        allowance = contract.allowance(SPENDER)
        assert allowance.amount_of("ushell") == 120000
        assert allowance.amount_of("ureef") == 5000
        assert allowance.expires == AtHeight(500000)

    def test_non_admin_cannot_grant(self, contract, fake_client):
        fake_client.sender_address = SPENDER
        with pytest.raises(RemoteExecutionError):
            contract.increase_allowance(SPENDER, Coin.of("x", 1))
        assert contract.allowance().balance == []

    def test_spender_executes_within_allowance(self, contract, fake_client):
        contract.increase_allowance(SPENDER, Coin.of("tok", 50))
        fake_client.sender_address = SPENDER

        send = BankSend(contract.contract_address, OTHER, [Coin.of("tok", 30)])
        contract.execute([send])
        assert contract.allowance().amount_of("tok") == 20

        # the batch as a whole overdraws, so none of it applies
        with pytest.raises(RemoteExecutionError):
            contract.execute([BankSend(contract.contract_address, OTHER, [Coin.of("tok", 10)])] * 3)
        assert contract.allowance().amount_of("tok") == 20

    def test_expired_allowance_cannot_execute(self, contract, fake_client):
        contract.increase_allowance(SPENDER, Coin.of("tok", 50), AtHeight(fake_client.block_height))
        fake_client.sender_address = SPENDER
        with pytest.raises(RemoteExecutionError):
            contract.execute([BankSend(contract.contract_address, OTHER, [Coin.of("tok", 1)])])


class TestAdmins:
    def test_update_admins_replaces_set_in_order(self, contract):
        contract.update_admins([OTHER, ADMIN])
        assert contract.admins() == AdminListResponse(admins=[OTHER, ADMIN], mutable=True)

    def test_freeze_is_permanent(self, contract):
        contract.freeze()
        assert contract.admins().mutable is False

        with pytest.raises(RemoteExecutionError):
            contract.update_admins([ADMIN, OTHER])
        with pytest.raises(RemoteExecutionError):
            contract.freeze()
        assert contract.admins() == AdminListResponse(admins=[ADMIN], mutable=False)

    def test_non_admin_cannot_freeze(self, contract, fake_client):
        fake_client.sender_address = OTHER
        with pytest.raises(RemoteExecutionError):
            contract.freeze()
        assert contract.admins().mutable is True


def test_instantiate_grant_and_query_scenario(factory):
    contract = factory.instantiate(
        factory.upload(), InitMsg(admins=["addrA"], mutable=True), "scenario"
    )
    assert contract.admins() == AdminListResponse(admins=["addrA"], mutable=True)

    contract.client.sender_address = "addrA"
    contract.increase_allowance("addrB", Coin(denom="tok", amount="50"))

    assert contract.allowance("addrB").to_json() == {
        "balance": [{"denom": "tok", "amount": "50"}],
        "expires": {"never": {}},
    }
