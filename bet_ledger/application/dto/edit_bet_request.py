"""Edit bet request DTO"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from bet_ledger.domain.errors import ValidationError


@dataclass
class EditBetRequest:
    """Request DTO for editing an open bet's question and option texts"""

    bet_id: str
    question: Optional[str] = None
    option_texts: Dict[str, str] = field(default_factory=dict)
    requester_id: Optional[str] = None

    @classmethod
    def from_dict(cls, bet_id: str, data: dict) -> 'EditBetRequest':
        """Create from snake_case dictionary (REST API)

        ``answer_options`` is a list of ``{"id", "text"}`` objects.
        """
        if 'wager_amount' in data or 'expires_at' in data:
            raise ValidationError("Only the question and answer option texts can be edited")

        options = data.get('answer_options') or []
        if not isinstance(options, list):
            raise ValidationError("answer_options must be a list")

        option_texts = {}
        for option in options:
            if not isinstance(option, dict) or not isinstance(option.get('id'), str) or not option['id']:
                raise ValidationError("Answer options must be given as {id, text} objects")
            option_texts[option['id']] = option.get('text', '')

        return cls(
            bet_id=bet_id,
            question=data.get('question'),
            option_texts=option_texts,
            requester_id=data.get('requester_id')
        )

    def validate(self) -> None:
        if not self.bet_id:
            raise ValidationError("bet_id is required")
        if self.question is None and not self.option_texts:
            raise ValidationError("Nothing to edit")
        if self.question is not None and (not isinstance(self.question, str) or not self.question.strip()):
            raise ValidationError("Question must not be empty")
        if any(not isinstance(text, str) or not text.strip() for text in self.option_texts.values()):
            raise ValidationError("Answer options must not be empty")
