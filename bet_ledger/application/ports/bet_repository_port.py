"""Bet repository port (interface)"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bet_ledger.domain.entities.bet import Bet


class BetRepositoryPort(ABC):
    """Port for bet document persistence. No business rules live here."""

    @abstractmethod
    def create(self, bet: Bet) -> Bet:
        """Insert a new bet, returns it with its assigned ID"""
        pass

    @abstractmethod
    def get(self, bet_id: str) -> Bet:
        """Load a bet, raises NotFound"""
        pass

    @abstractmethod
    def update(self, bet_id: str, patch: Dict[str, Any]) -> Bet:
        """Apply a partial update unconditionally, raises NotFound"""
        pass

    @abstractmethod
    def replace(self, bet: Bet, expected_version: int) -> Bet:
        """Write the whole bet if the stored version still matches.

        Raises ConcurrentModification when another writer got there first.
        """
        pass

    @abstractmethod
    def delete(self, bet_id: str, expected_version: Optional[int] = None) -> None:
        """Delete a bet, raises NotFound (or ConcurrentModification on a version mismatch)"""
        pass

    @abstractmethod
    def list_by_group(self, group_id: str) -> List[Bet]:
        """Bets of a group, newest first"""
        pass

    @abstractmethod
    def list_by_user(self, user_id: str) -> List[Bet]:
        """Bets the user created or staked on, newest first"""
        pass

    @abstractmethod
    def list_open_expiring_before(self, cutoff: float) -> List[Bet]:
        """Open bets whose expires_at is at or before cutoff"""
        pass
