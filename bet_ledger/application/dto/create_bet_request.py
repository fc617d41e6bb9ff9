"""Create bet request DTO"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List

from bet_ledger.domain.entities.bet import MIN_ANSWER_OPTIONS
from bet_ledger.domain.errors import ValidationError


def parse_timestamp(value: Any) -> float:
    """Epoch seconds from a number or an ISO-8601 string (naive strings are UTC)"""
    if isinstance(value, bool):
        raise ValidationError("expires_at must be a timestamp")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValidationError("expires_at must be a finite timestamp")
        return float(value)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"expires_at is not a valid ISO-8601 timestamp: {value}")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    raise ValidationError("expires_at is required")


@dataclass
class CreateBetRequest:
    """Request DTO for bet creation"""

    group_id: str
    creator_id: str
    question: str
    answer_options: List[str] = field(default_factory=list)
    wager_amount: Any = 0
    expires_at: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> 'CreateBetRequest':
        """Create from snake_case dictionary (REST API)"""
        options = data.get('answer_options') or []
        if not isinstance(options, list):
            raise ValidationError("answer_options must be a list")
        return cls(
            group_id=data.get('group_id', ''),
            creator_id=data.get('creator_id', ''),
            question=data.get('question', ''),
            answer_options=[o.get('text', '') if isinstance(o, dict) else o for o in options],
            wager_amount=data.get('wager_amount', 0),
            expires_at=parse_timestamp(data.get('expires_at'))
        )

    def validate(self, now: float) -> None:
        """Single validation pass, run before anything is written"""
        if not self.group_id:
            raise ValidationError("group_id is required")
        if not self.creator_id:
            raise ValidationError("creator_id is required")
        if not isinstance(self.question, str) or not self.question.strip():
            raise ValidationError("Question must not be empty")
        if len(self.answer_options) < MIN_ANSWER_OPTIONS:
            raise ValidationError(f"Bet must have at least {MIN_ANSWER_OPTIONS} answer options")
        if any(not isinstance(text, str) or not text.strip() for text in self.answer_options):
            raise ValidationError("Answer options must not be empty")
        if (not isinstance(self.wager_amount, int) or isinstance(self.wager_amount, bool)
                or self.wager_amount <= 0):
            raise ValidationError("Wager amount must be a positive integer")
        if not isinstance(self.expires_at, (int, float)) or not math.isfinite(self.expires_at):
            raise ValidationError("expires_at must be a finite timestamp")
        if self.expires_at <= now:
            raise ValidationError("expires_at must be in the future")
