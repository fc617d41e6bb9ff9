"""Bet ledger error taxonomy"""
from typing import Any, Dict, List, Optional


class BetLedgerError(Exception):
    """Base class for every failure surfaced by the bet ledger"""

    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.kind, "message": self.message}


class NotFound(BetLedgerError):
    kind = "not_found"


class InvalidState(BetLedgerError):
    kind = "invalid_state"


class Unauthorized(BetLedgerError):
    kind = "unauthorized"


class Expired(BetLedgerError):
    kind = "expired"


class AlreadyStaked(BetLedgerError):
    kind = "already_staked"


class InsufficientFunds(BetLedgerError):
    kind = "insufficient_funds"

    def __init__(self, user_id: str, required: int, available: Optional[int] = None):
        if available is None:
            message = f"Insufficient coins: {required} required"
        else:
            message = f"Insufficient coins: {required} required but {available} available"
        super().__init__(message)
        self.user_id = user_id
        self.required = required
        self.available = available


class ValidationError(BetLedgerError):
    kind = "validation_error"


class ResultsNotAvailable(BetLedgerError):
    kind = "results_not_available"


class Unavailable(BetLedgerError):
    kind = "unavailable"


class ConcurrentModification(BetLedgerError):
    """Compare-and-swap lost against a concurrent writer. Use cases retry on it."""

    kind = "concurrent_modification"


class PartialSettlementFailure(BetLedgerError):
    """Bet is completed but some winners could not be credited"""

    kind = "partial_settlement_failure"

    def __init__(self, bet_id: str, resolved_winners: List[str], failed_winners: List[str]):
        super().__init__(
            f"Bet {bet_id} settled with {len(failed_winners)} unpaid winner(s); "
            f"manual reconciliation required"
        )
        self.bet_id = bet_id
        self.resolved_winners = list(resolved_winners)
        self.failed_winners = list(failed_winners)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "bet_id": self.bet_id,
            "resolved_winners": self.resolved_winners,
            "failed_winners": self.failed_winners,
        })
        return result
