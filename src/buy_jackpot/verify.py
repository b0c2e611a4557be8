from __future__ import annotations

import json
from typing import Any, Dict, List

from .draw import outcome_is_consistent
from .models import LotteryOutcome


def verify_record(record: Dict[str, Any]) -> List[str]:
    """Problems found in one audit record; empty when it checks out."""
    problems: List[str] = []
    o = record["outcome"]
    outcome = LotteryOutcome(
        is_winner=bool(o["is_winner"]),
        winning_number=int(o["winning_number"]),
        sample_set=tuple(int(n) for n in o["sample_set"]),
        win_percent=int(o["win_percent"]),
    )
    if not outcome_is_consistent(outcome):
        problems.append(
            f"draw inconsistent: winning_num={outcome.winning_number} "
            f"pot={list(outcome.sample_set)} is_winner={outcome.is_winner}"
        )

    payout = record.get("payout")
    if payout is not None:
        if not outcome.is_winner:
            problems.append("payout recorded for a losing draw")
        if payout["succeeded"] != (payout["transaction_reference"] is not None):
            problems.append("payout success does not match transaction reference")

    if record["kind"] == "holder" and record.get("winner") and payout:
        if payout["recipient"] != record["winner"]["owner_address"]:
            problems.append("holder payout recipient is not the selected winner")
    return problems


def verify_audit(audit_path: str) -> Dict[str, Any]:
    records = 0
    wins = 0
    failures: List[str] = []
    with open(audit_path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            if not line.strip():
                continue
            record = json.loads(line)
            records += 1
            if record["outcome"]["is_winner"]:
                wins += 1
            for problem in verify_record(record):
                failures.append(f"line {lineno}: {problem}")

    if failures:
        raise RuntimeError("Audit verification failed:\n" + "\n".join(failures))

    return {"ok": True, "records": records, "wins": wins}
