import json
from decimal import Decimal

import base58
import pytest
from solders.keypair import Keypair

from buy_jackpot import config
from buy_jackpot.config import Settings
from buy_jackpot.errors import ConfigurationError
from conftest import new_address

ENV_VARS = (
    "RPC_URL",
    "HELIUS_API_KEY",
    "JACKPOT_PRIVATE_KEY",
    "HOLDERS_JACKPOT_PRIVATE_KEY",
    "TOKEN_ADDRESS",
    "MIN_BUY_USD",
    "HOLDER_MIN_RAW_BALANCE",
    "EXCLUDED_WALLETS",
    "EXCLUDED_WALLETS_FILE",
    "TRADE_PAYOUT_SHARE",
    "HOLDER_PAYOUT_SHARE",
    "DEDUP_CAPACITY",
    "PRICE_TTL_SECONDS",
)


def _secret() -> str:
    return base58.b58encode(bytes(Keypair())).decode()


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    mint = new_address()
    monkeypatch.setenv("RPC_URL", "http://rpc.test")
    monkeypatch.setenv("JACKPOT_PRIVATE_KEY", _secret())
    monkeypatch.setenv("TOKEN_ADDRESS", mint)
    return monkeypatch


def test_defaults(env):
    s = Settings.from_env()
    assert s.rpc_url == "http://rpc.test"
    assert s.min_buy_usd == Decimal("100")
    assert s.holder_min_raw_balance == 10**12
    assert s.holders_jackpot_private_key is None
    assert s.trade_payout_share == Decimal("0.5")
    assert s.token_address in s.excluded_wallets


def test_rpc_override_and_helius_fallback(env):
    assert Settings.from_env(rpc_url_override="http://other").rpc_url == "http://other"
    env.delenv("RPC_URL")
    env.setenv("HELIUS_API_KEY", "k")
    assert Settings.from_env().rpc_url == "https://mainnet.helius-rpc.com/?api-key=k"


@pytest.mark.parametrize("missing", ["RPC_URL", "JACKPOT_PRIVATE_KEY", "TOKEN_ADDRESS"])
def test_missing_required_values(env, missing):
    env.delenv(missing)
    with pytest.raises(ConfigurationError):
        Settings.from_env()


@pytest.mark.parametrize(
    "name, value",
    [
        ("TOKEN_ADDRESS", "not-a-mint"),
        ("MIN_BUY_USD", "lots"),
        ("MIN_BUY_USD", "-1"),
        ("TRADE_PAYOUT_SHARE", "1.5"),
        ("HOLDER_PAYOUT_SHARE", "0"),
        ("HOLDER_MIN_RAW_BALANCE", "many"),
        ("DEDUP_CAPACITY", "0"),
        ("PRICE_TTL_SECONDS", "soon"),
        ("EXCLUDED_WALLETS_FILE", "/nonexistent/excluded.txt"),
    ],
)
def test_invalid_values(env, name, value):
    env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_pools_need_distinct_keys(env):
    env.setenv("HOLDERS_JACKPOT_PRIVATE_KEY", config.os.environ["JACKPOT_PRIVATE_KEY"])
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_exclusions_from_env_and_file(env, tmp_path):
    path = tmp_path / "excluded.txt"
    path.write_text("# dead\nFILEWALLET\n", encoding="utf-8")
    env.setenv("EXCLUDED_WALLETS", "A, B,,")
    env.setenv("EXCLUDED_WALLETS_FILE", str(path))
    env.setenv("HOLDERS_JACKPOT_PRIVATE_KEY", _secret())
    env.setenv("MIN_BUY_USD", "250")
    s = Settings.from_env()
    assert {"A", "B", "FILEWALLET"} <= s.excluded_wallets
    assert s.holders_jackpot_private_key is not None
    assert s.min_buy_usd == Decimal("250")


def test_same_key_in_another_encoding_is_rejected(env):
    kp = Keypair()
    env.setenv("JACKPOT_PRIVATE_KEY", base58.b58encode(bytes(kp)).decode())
    env.setenv("HOLDERS_JACKPOT_PRIVATE_KEY", json.dumps(list(bytes(kp))))
    with pytest.raises(ConfigurationError, match="must differ"):
        Settings.from_env()


@pytest.mark.parametrize("name", ["JACKPOT_PRIVATE_KEY", "HOLDERS_JACKPOT_PRIVATE_KEY"])
def test_unreadable_pool_key_fails_at_startup(env, name):
    env.setenv(name, "[1, 2, 3]")
    with pytest.raises(ConfigurationError, match="private key"):
        Settings.from_env()
