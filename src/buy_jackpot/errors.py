from __future__ import annotations


class BuyJackpotError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(BuyJackpotError):
    """Missing or invalid startup configuration. Fatal."""


class PayoutError(BuyJackpotError):
    """A single payout could not be made. Never escapes a RewardPool."""


class InvalidRecipientError(PayoutError):
    pass


class InsufficientBalanceError(PayoutError):
    pass


class LedgerSubmissionError(PayoutError):
    """Submitting or confirming a transfer failed.

    ``hint`` is one of ``insufficient-funds-for-fee``, ``simulation-failed``
    or ``generic``.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint or classify_submission_error(message)


class RpcError(LedgerSubmissionError):
    """The JSON-RPC answer carried an ``error`` member or could not be read."""


class PriceUnavailableError(BuyJackpotError):
    pass


def classify_submission_error(message: str) -> str:
    lowered = message.lower()
    if "insufficient funds" in lowered or "insufficient lamports" in lowered:
        return "insufficient-funds-for-fee"
    if "simulation failed" in lowered:
        return "simulation-failed"
    return "generic"
