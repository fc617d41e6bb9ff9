"""Settlement response DTO"""
from dataclasses import dataclass, field
from typing import List


@dataclass
class SettlementResponse:
    """Response DTO for a resolved bet's payout pass"""

    bet_id: str
    winning_option_id: str
    total_pool: int
    winnings_per_person: int
    undistributed_remainder: int
    payout_status: str
    winners: List[str] = field(default_factory=list)
    paid_winners: List[str] = field(default_factory=list)
    failed_winners: List[str] = field(default_factory=list)
    refunded: bool = False

    def to_dict(self) -> dict:
        """Convert to snake_case dictionary (REST API)"""
        return {
            "bet_id": self.bet_id,
            "winning_option_id": self.winning_option_id,
            "total_pool": self.total_pool,
            "winnings_per_person": self.winnings_per_person,
            "undistributed_remainder": self.undistributed_remainder,
            "payout_status": self.payout_status,
            "winners": self.winners,
            "paid_winners": self.paid_winners,
            "failed_winners": self.failed_winners,
            "refunded": self.refunded
        }
