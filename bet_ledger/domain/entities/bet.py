"""Bet entity and its lifecycle rules"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import time

from bet_ledger.domain.errors import (
    AlreadyStaked,
    Expired,
    InvalidState,
    NotFound,
    ValidationError,
)


class BetStatus(str, Enum):
    OPEN = "open"
    LOCKED = "locked"
    COMPLETED = "completed"


class PayoutStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    SETTLED = "settled"
    PARTIAL = "partial"


MIN_ANSWER_OPTIONS = 2


@dataclass
class AnswerOption:
    """One selectable outcome of a bet, with its participants in join order"""

    id: str
    text: str
    participants: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "participants": list(self.participants)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AnswerOption':
        return cls(
            id=data.get("id"),
            text=data.get("text", ""),
            participants=list(data.get("participants", []))
        )


@dataclass
class Bet:
    """Domain entity representing a group wager"""

    group_id: str
    creator_id: str
    question: str
    answer_options: List[AnswerOption]
    wager_amount: int
    expires_at: float
    status: BetStatus = BetStatus.OPEN
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    locked_at: Optional[float] = None
    resolved_at: Optional[float] = None
    winning_option_id: Optional[str] = None
    winnings_per_person: Optional[int] = None
    total_pool: int = 0
    undistributed_remainder: int = 0
    refunded: bool = False
    payout_status: PayoutStatus = PayoutStatus.NONE
    paid_winners: List[str] = field(default_factory=list)
    failed_payouts: List[str] = field(default_factory=list)
    expiry_notices: List[int] = field(default_factory=list)
    reactions: List[Dict[str, Any]] = field(default_factory=list)
    comment_count: int = 0
    version: int = 0
    id: Optional[str] = None

    @property
    def all_participants(self) -> List[str]:
        """Every participant across all options, option order then join order"""
        return [user_id for option in self.answer_options for user_id in option.participants]

    @property
    def participant_count(self) -> int:
        return sum(len(option.participants) for option in self.answer_options)

    def find_option(self, option_id: str) -> Optional[AnswerOption]:
        for option in self.answer_options:
            if option.id == option_id:
                return option
        return None

    def option_of(self, user_id: str) -> Optional[AnswerOption]:
        """Option the user has staked on, if any"""
        for option in self.answer_options:
            if user_id in option.participants:
                return option
        return None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def recompute_total_pool(self) -> int:
        self.total_pool = self.wager_amount * self.participant_count
        return self.total_pool

    def check_can_join(self, user_id: str, option_id: str, now: float) -> AnswerOption:
        """Raise if the user may not stake on option_id right now"""
        if self.status != BetStatus.OPEN:
            raise InvalidState(f"Bet {self.id} is {self.status.value} and no longer accepting wagers")
        if self.is_expired(now):
            raise Expired(f"Bet {self.id} has expired")

        option = self.find_option(option_id)
        if option is None:
            raise NotFound(f"Answer option {option_id} not found on bet {self.id}")
        if self.option_of(user_id) is not None:
            raise AlreadyStaked(f"User {user_id} has already placed a bet on {self.id}")
        return option

    def add_participant(self, user_id: str, option_id: str, now: float) -> AnswerOption:
        """Record a stake. Raises if the bet cannot accept it."""
        option = self.check_can_join(user_id, option_id, now)
        option.participants.append(user_id)
        self.recompute_total_pool()
        self.updated_at = now
        return option

    def lock(self, now: float) -> None:
        if self.status != BetStatus.OPEN:
            raise InvalidState(f"Bet {self.id} is {self.status.value}; only open bets can be locked")
        self.status = BetStatus.LOCKED
        self.locked_at = now
        self.updated_at = now

    def complete(
        self,
        winning_option_id: str,
        winnings_per_person: int,
        undistributed_remainder: int,
        now: float,
        refunded: bool = False
    ) -> None:
        if self.status != BetStatus.LOCKED:
            raise InvalidState(
                f"Bet {self.id} is {self.status.value}; it must be locked before results are released"
            )
        if self.find_option(winning_option_id) is None:
            raise NotFound(f"Answer option {winning_option_id} not found on bet {self.id}")

        self.status = BetStatus.COMPLETED
        self.winning_option_id = winning_option_id
        self.winnings_per_person = winnings_per_person
        self.undistributed_remainder = undistributed_remainder
        self.refunded = refunded
        self.payout_status = PayoutStatus.PENDING
        self.resolved_at = now
        self.updated_at = now

    def record_payouts(self, paid: List[str], failed: List[str], now: float) -> None:
        """Track which credits of the payout pass went through"""
        if self.status != BetStatus.COMPLETED:
            raise InvalidState(f"Bet {self.id} is {self.status.value}; payouts belong to completed bets")
        self.paid_winners = self.paid_winners + [u for u in paid if u not in self.paid_winners]
        # A concurrent retry may already have paid someone this pass failed on
        self.failed_payouts = [u for u in failed if u not in self.paid_winners]
        self.payout_status = PayoutStatus.PARTIAL if self.failed_payouts else PayoutStatus.SETTLED
        self.updated_at = now

    def edit(self, question: Optional[str], option_texts: Dict[str, str], now: float) -> None:
        """Change question and option texts. Option ids and count are fixed."""
        if self.status != BetStatus.OPEN:
            raise InvalidState(f"Bet {self.id} is {self.status.value}; only open bets can be edited")

        unknown = [option_id for option_id in option_texts if self.find_option(option_id) is None]
        if unknown:
            raise ValidationError(f"Unknown answer option(s): {', '.join(sorted(unknown))}")

        if question is not None:
            self.question = question
        for option_id, text in option_texts.items():
            self.find_option(option_id).text = text
        self.updated_at = now

    def to_dict(self) -> dict:
        """Convert to dictionary for storage"""
        return {
            "group_id": self.group_id,
            "creator_id": self.creator_id,
            "question": self.question,
            "answer_options": [option.to_dict() for option in self.answer_options],
            "participants": self.all_participants,
            "wager_amount": self.wager_amount,
            "expires_at": self.expires_at,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "locked_at": self.locked_at,
            "resolved_at": self.resolved_at,
            "winning_option_id": self.winning_option_id,
            "winnings_per_person": self.winnings_per_person,
            "total_pool": self.total_pool,
            "undistributed_remainder": self.undistributed_remainder,
            "refunded": self.refunded,
            "payout_status": self.payout_status.value,
            "paid_winners": list(self.paid_winners),
            "failed_payouts": list(self.failed_payouts),
            "expiry_notices": list(self.expiry_notices),
            "reactions": list(self.reactions),
            "comment_count": self.comment_count,
            "version": self.version
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Bet':
        """Create from a stored document"""
        return cls(
            group_id=data.get("group_id"),
            creator_id=data.get("creator_id"),
            question=data.get("question", ""),
            answer_options=[AnswerOption.from_dict(o) for o in data.get("answer_options", [])],
            wager_amount=data.get("wager_amount", 0),
            expires_at=data.get("expires_at", 0.0),
            status=BetStatus(data.get("status", BetStatus.OPEN.value)),
            created_at=data.get("created_at", time.time()),
            updated_at=data.get("updated_at", time.time()),
            locked_at=data.get("locked_at"),
            resolved_at=data.get("resolved_at"),
            winning_option_id=data.get("winning_option_id"),
            winnings_per_person=data.get("winnings_per_person"),
            total_pool=data.get("total_pool", 0),
            undistributed_remainder=data.get("undistributed_remainder", 0),
            refunded=data.get("refunded", False),
            payout_status=PayoutStatus(data.get("payout_status", PayoutStatus.NONE.value)),
            paid_winners=list(data.get("paid_winners", [])),
            failed_payouts=list(data.get("failed_payouts", [])),
            expiry_notices=list(data.get("expiry_notices", [])),
            reactions=list(data.get("reactions", [])),
            comment_count=data.get("comment_count", 0),
            version=data.get("version", 0),
            id=str(data.get("_id")) if data.get("_id") else None
        )
