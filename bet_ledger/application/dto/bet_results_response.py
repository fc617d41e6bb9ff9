"""Bet results response DTO"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class BetResultsResponse:
    """Read-only projection of a completed bet"""

    bet_id: str
    question: str
    total_pool: int
    winning_option_id: str
    winning_option_text: str
    winnings_per_person: int
    undistributed_remainder: int
    payout_status: str
    winners: List[str] = field(default_factory=list)
    resolved_at: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to snake_case dictionary (REST API)"""
        return {
            "bet_id": self.bet_id,
            "question": self.question,
            "total_pool": self.total_pool,
            "winning_option": {
                "id": self.winning_option_id,
                "text": self.winning_option_text,
                "winners": self.winners,
                "winnings_per_person": self.winnings_per_person
            },
            "undistributed_remainder": self.undistributed_remainder,
            "payout_status": self.payout_status,
            "resolved_at": self.resolved_at
        }
