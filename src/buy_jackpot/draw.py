from __future__ import annotations

import random
from typing import Optional

from .models import LotteryOutcome
from .project_constants import DRAW_SLOTS


class DrawEngine:
    """Two-step lottery draw.

    First ``win_percent`` distinct slots out of 1..100 are sampled without
    replacement (the "pot" shown to players). Then one winning number is
    drawn uniformly from 1..100, independently of the pot. The buy wins iff
    the winning number landed in the pot, so ``P(win) == win_percent / 100``.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.SystemRandom()

    def draw(self, win_percent: int) -> LotteryOutcome:
        count = min(max(int(win_percent), 0), DRAW_SLOTS)
        pot = sorted(self.rng.sample(range(1, DRAW_SLOTS + 1), count))
        winning_number = self.rng.randint(1, DRAW_SLOTS)
        return LotteryOutcome(
            is_winner=winning_number in pot,
            winning_number=winning_number,
            sample_set=tuple(pot),
            win_percent=count,
        )


def outcome_is_consistent(outcome: LotteryOutcome) -> bool:
    """True when an outcome satisfies the draw invariants."""
    pot = outcome.sample_set
    if len(set(pot)) != len(pot):
        return False
    if len(pot) != min(max(outcome.win_percent, 0), DRAW_SLOTS):
        return False
    if any(n < 1 or n > DRAW_SLOTS for n in pot):
        return False
    if not 1 <= outcome.winning_number <= DRAW_SLOTS:
        return False
    return outcome.is_winner == (outcome.winning_number in pot)
