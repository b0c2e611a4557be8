import asyncio
import json
from decimal import Decimal

import base58
import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair

from buy_jackpot.errors import ConfigurationError, LedgerSubmissionError
from buy_jackpot.ledger import SolanaLedger
from buy_jackpot.rpc import RpcClient
from buy_jackpot.wallet import RewardPool, load_keypair
from conftest import FEE, FakeLedger, new_address, rpc_transport


def test_load_keypair_base58_and_array():
    kp = Keypair()
    assert load_keypair(base58.b58encode(bytes(kp)).decode()).pubkey() == kp.pubkey()
    assert load_keypair(json.dumps(list(bytes(kp)))).pubkey() == kp.pubkey()


@pytest.mark.parametrize("secret", ["", "not-base58-0OIl", "[1, 2, 3]"])
def test_load_keypair_rejects_garbage(secret):
    with pytest.raises(ConfigurationError):
        load_keypair(secret)


@pytest.mark.asyncio
async def test_transfer_moves_funds(trade_pool, ledger):
    winner = new_address()
    sig = await trade_pool.transfer(Decimal("5"), winner)
    assert sig == "sig-1"
    assert ledger.balances[winner] == Decimal("5")
    assert ledger.balances[trade_pool.address] == Decimal("5") - FEE
    assert ledger.submissions == [(trade_pool.address, winner, 5_000_000_000)]


@pytest.mark.asyncio
async def test_invalid_recipient_returns_none_without_balance_check(trade_pool, ledger):
    assert await trade_pool.transfer(Decimal("1"), "not a wallet") is None
    assert ledger.balance_reads == 0
    assert ledger.submissions == []


@pytest.mark.asyncio
async def test_insufficient_balance_returns_none_and_submits_nothing(pool_keypair):
    ledger = FakeLedger({str(pool_keypair.pubkey()): Decimal("1.0")})
    pool = RewardPool("jackpot", pool_keypair, ledger)
    assert await pool.transfer(Decimal("1.5"), new_address()) is None
    assert ledger.submissions == []
    assert await pool.current_balance() == Decimal("1.0")


@pytest.mark.asyncio
async def test_lamports_are_floor_rounded(trade_pool, ledger):
    await trade_pool.transfer(Decimal("0.0000000019"), new_address())
    assert ledger.submissions[0][2] == 1


@pytest.mark.asyncio
async def test_dust_amount_is_not_sent(trade_pool, ledger):
    assert await trade_pool.transfer(Decimal("0.0000000001"), new_address()) is None
    assert ledger.submissions == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        LedgerSubmissionError("Transaction simulation failed: blockhash not found"),
        LedgerSubmissionError("insufficient funds for fee"),
        httpx.ConnectError("boom"),
    ],
)
async def test_submission_errors_become_none(pool_keypair, error, caplog):
    ledger = FakeLedger({str(pool_keypair.pubkey()): Decimal("3")}, fail_with=error)
    pool = RewardPool("jackpot", pool_keypair, ledger)
    assert await pool.transfer(Decimal("1"), new_address()) is None
    assert "Transfer error" in caplog.text


@pytest.mark.asyncio
async def test_simulation_failure_logs_hint(pool_keypair, caplog):
    error = LedgerSubmissionError("Transaction simulation failed: Attempt to debit")
    ledger = FakeLedger({str(pool_keypair.pubkey()): Decimal("3")}, fail_with=error)
    pool = RewardPool("jackpot", pool_keypair, ledger)
    await pool.transfer(Decimal("1"), new_address())
    assert "Hint: Transaction simulation failed" in caplog.text


@pytest.mark.asyncio
async def test_transfer_share_pays_half_of_live_balance(trade_pool, ledger):
    winner = new_address()
    result = await trade_pool.transfer_share(Decimal("0.5"), winner)
    assert result.succeeded
    assert result.transaction_reference == "sig-1"
    assert result.amount_sol == Decimal("5")
    assert ledger.balances[trade_pool.address] == Decimal("5") - FEE


@pytest.mark.asyncio
async def test_transfer_share_invalid_recipient(trade_pool, ledger):
    result = await trade_pool.transfer_share(Decimal("0.5"), "nope")
    assert not result.succeeded
    assert result.transaction_reference is None
    assert ledger.balance_reads == 0


@pytest.mark.asyncio
async def test_overlapping_transfers_cannot_overdraw(pool_keypair):
    ledger = FakeLedger({str(pool_keypair.pubkey()): Decimal("10")}, submit_delay=0.01)
    pool = RewardPool("jackpot", pool_keypair, ledger)
    results = await asyncio.gather(
        pool.transfer(Decimal("6"), new_address()),
        pool.transfer(Decimal("6"), new_address()),
    )
    assert sorted(r is None for r in results) == [False, True]
    assert len(ledger.submissions) == 1
    assert ledger.max_in_flight == 1
    assert ledger.balances[pool.address] >= 0


@pytest.mark.asyncio
async def test_pools_do_not_share_a_lock():
    ledger = FakeLedger(submit_delay=0.01)
    a, b = Keypair(), Keypair()
    ledger.balances[str(a.pubkey())] = Decimal("10")
    ledger.balances[str(b.pubkey())] = Decimal("10")
    pool_a = RewardPool("jackpot", a, ledger)
    pool_b = RewardPool("holders-jackpot", b, ledger)
    await asyncio.gather(
        pool_a.transfer(Decimal("1"), new_address()),
        pool_b.transfer(Decimal("1"), new_address()),
    )
    assert ledger.max_in_flight == 2


@pytest.mark.asyncio
async def test_estimate_transfer_fee(trade_pool):
    assert await trade_pool.estimate_transfer_fee() == FEE


def gateway_ledger(send_answer):
    transport = rpc_transport(
        {
            "getBalance": lambda p: {"context": {}, "value": 3 * 10**9},
            "getLatestBlockhash": lambda p: {"context": {}, "value": {"blockhash": str(Hash.default())}},
            "sendTransaction": lambda p: send_answer(),
        }
    )
    return SolanaLedger(RpcClient("http://rpc.test", transport=transport), poll_interval_s=0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "send_answer",
    [
        lambda: httpx.Response(200, text="<html>bad gateway</html>"),
        lambda: httpx.Response(200, json=["not", "an", "object"]),
        lambda: {"unexpected": "shape"},
    ],
)
async def test_unreadable_send_answer_returns_none(pool_keypair, send_answer, caplog):
    ledger = gateway_ledger(send_answer)
    pool = RewardPool("jackpot", pool_keypair, ledger)
    try:
        assert await pool.transfer(Decimal("1"), new_address()) is None
        result = await pool.transfer_share(Decimal("0.5"), new_address())
    finally:
        await ledger.rpc.close()
    assert not result.succeeded
    assert "Transfer error" in caplog.text
