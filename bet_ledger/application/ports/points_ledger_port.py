"""Points ledger port (interface)"""
from abc import ABC, abstractmethod
from typing import Optional


class PointsLedgerPort(ABC):
    """Port for user coin balances.

    Implementations must debit atomically and never let a balance go below
    zero. Calls carrying an idempotency key are applied at most once per key.
    """

    @abstractmethod
    def get_balance(self, user_id: str) -> int:
        """Get user balance"""
        pass

    @abstractmethod
    def debit(self, user_id: str, amount: int, reason: str, idempotency_key: Optional[str] = None) -> int:
        """Remove coins, returns new balance. Raises InsufficientFunds."""
        pass

    @abstractmethod
    def credit(self, user_id: str, amount: int, reason: str, idempotency_key: Optional[str] = None) -> int:
        """Add coins, returns new balance"""
        pass
