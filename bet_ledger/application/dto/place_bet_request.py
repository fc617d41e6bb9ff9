"""Place bet request DTO"""
from dataclasses import dataclass

from bet_ledger.domain.errors import ValidationError


@dataclass
class PlaceBetRequest:
    """Request DTO for joining a bet option"""

    bet_id: str
    user_id: str
    option_id: str

    @classmethod
    def from_dict(cls, bet_id: str, data: dict) -> 'PlaceBetRequest':
        """Create from snake_case dictionary (REST API)"""
        return cls(
            bet_id=bet_id,
            user_id=data.get('user_id', ''),
            option_id=data.get('option_id', '')
        )

    def validate(self) -> None:
        if not self.bet_id:
            raise ValidationError("bet_id is required")
        if not self.user_id:
            raise ValidationError("user_id is required")
        if not self.option_id:
            raise ValidationError("option_id is required")
