import pytest

from cw1_subkeys.options import Options

from .fakes import FakeSigningClient


@pytest.fixture
def fake_client():
    return FakeSigningClient()


@pytest.fixture
def test_options(tmp_path):
    return Options(
        rest_url="http://lcd.test",
        chain_id="testing-1",
        fee_token="ucosm",
        gas_price=0.025,
        bech32_prefix="coral",
        default_key_file=str(tmp_path / "test.key"),
        tx_poll_interval=0,
        tx_poll_timeout=5,
    )
