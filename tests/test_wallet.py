import pytest
from eth_account import Account

from ensdash import config
from ensdash.wallet import Wallet, load_key

KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
KEY_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    monkeypatch.delenv(config.ENV_PRIVATE_KEY, raising=False)
    monkeypatch.delenv(config.ENV_PRIVATE_KEY_LEGACY, raising=False)


def test_missing_key_raises():
    with pytest.raises(RuntimeError, match=config.ENV_PRIVATE_KEY):
        load_key()


def test_key_from_env(monkeypatch):
    monkeypatch.setenv(config.ENV_PRIVATE_KEY, KEY)
    assert Wallet().address == KEY_ADDRESS


def test_legacy_variable_is_a_fallback(monkeypatch):
    monkeypatch.setenv(config.ENV_PRIVATE_KEY_LEGACY, KEY[2:])
    assert load_key().address == KEY_ADDRESS


def test_from_key_accepts_prefix():
    assert Wallet.from_key(KEY).address == Wallet.from_key(KEY[2:]).address == KEY_ADDRESS


def test_sign_transaction_returns_raw_bytes():
    wallet = Wallet(account=Account.create())
    raw = wallet.sign_transaction(
        {
            "to": "0x0000000000000000000000000000000000000001",
            "value": 0,
            "gas": 21_000,
            "maxFeePerGas": 2_000_000_000,
            "maxPriorityFeePerGas": 1_000_000_000,
            "nonce": 0,
            "chainId": 11155111,
        }
    )
    assert isinstance(raw, bytes)
    assert raw[0] == 2  # EIP-1559 typed transaction
