"""Bet statistics response DTO"""
from dataclasses import dataclass, field
from typing import List


@dataclass
class OptionStats:
    id: str
    text: str
    participant_count: int
    percentage: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "participant_count": self.participant_count,
            "percentage": self.percentage
        }


@dataclass
class BetStatsResponse:
    """Per-option participation breakdown, available in any status"""

    bet_id: str
    question: str
    status: str
    total_pool: int
    total_participants: int
    option_stats: List[OptionStats] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to snake_case dictionary (REST API)"""
        return {
            "bet_id": self.bet_id,
            "question": self.question,
            "status": self.status,
            "total_pool": self.total_pool,
            "total_participants": self.total_participants,
            "option_stats": [stats.to_dict() for stats in self.option_stats]
        }
