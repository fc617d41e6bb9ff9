"""Resolve bet request DTO"""
from dataclasses import dataclass

from bet_ledger.domain.errors import ValidationError


@dataclass
class ResolveBetRequest:
    """Request DTO for releasing a bet's result"""

    bet_id: str
    requester_id: str
    winning_option_id: str

    @classmethod
    def from_dict(cls, bet_id: str, data: dict) -> 'ResolveBetRequest':
        """Create from snake_case dictionary (REST API)"""
        return cls(
            bet_id=bet_id,
            requester_id=data.get('requester_id', ''),
            winning_option_id=data.get('winning_option_id', '')
        )

    def validate(self) -> None:
        if not self.bet_id:
            raise ValidationError("bet_id is required")
        if not self.requester_id:
            raise ValidationError("requester_id is required")
        if not self.winning_option_id:
            raise ValidationError("winning_option_id is required")
