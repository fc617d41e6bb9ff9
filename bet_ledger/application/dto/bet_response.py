"""Bet response DTO"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from bet_ledger.domain.entities.bet import Bet


@dataclass
class BetResponse:
    """Response DTO for a single bet"""

    id: str
    group_id: str
    creator_id: str
    question: str
    answer_options: List[Dict[str, Any]]
    wager_amount: int
    status: str
    expires_at: float
    total_pool: int
    created_at: float
    updated_at: float
    winning_option_id: Optional[str] = None
    winnings_per_person: Optional[int] = None
    resolved_at: Optional[float] = None

    @classmethod
    def from_entity(cls, bet: Bet) -> 'BetResponse':
        return cls(
            id=bet.id,
            group_id=bet.group_id,
            creator_id=bet.creator_id,
            question=bet.question,
            answer_options=[option.to_dict() for option in bet.answer_options],
            wager_amount=bet.wager_amount,
            status=bet.status.value,
            expires_at=bet.expires_at,
            total_pool=bet.total_pool,
            created_at=bet.created_at,
            updated_at=bet.updated_at,
            winning_option_id=bet.winning_option_id,
            winnings_per_person=bet.winnings_per_person,
            resolved_at=bet.resolved_at
        )

    def to_dict(self) -> dict:
        """Convert to snake_case dictionary (REST API)"""
        result = {
            "id": self.id,
            "group_id": self.group_id,
            "creator_id": self.creator_id,
            "question": self.question,
            "answer_options": self.answer_options,
            "wager_amount": self.wager_amount,
            "status": self.status,
            "expires_at": self.expires_at,
            "total_pool": self.total_pool,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
        if self.winning_option_id is not None:
            result["winning_option_id"] = self.winning_option_id
            result["winnings_per_person"] = self.winnings_per_person
            result["resolved_at"] = self.resolved_at
        return result
