"""Pool split for a resolved bet"""
from dataclasses import dataclass, field
from typing import List

from bet_ledger.domain.entities.bet import Bet
from bet_ledger.domain.errors import NotFound


@dataclass
class SettlementPlan:
    """Who gets paid what when a bet resolves.

    The pool is split evenly among the winners with integer division.
    The remainder of that division is not paid to anyone and is reported
    as ``undistributed_remainder``. With no winners the whole pool is
    forfeited, unless the refund policy is on, in which case every
    participant gets their stake back.
    """

    winning_option_id: str
    total_pool: int
    winners: List[str] = field(default_factory=list)
    winnings_per_person: int = 0
    undistributed_remainder: int = 0
    refunds: List[str] = field(default_factory=list)
    refund_amount: int = 0

    @property
    def refunded(self) -> bool:
        return bool(self.refunds)

    @classmethod
    def for_bet(cls, bet: Bet, winning_option_id: str, refund_on_no_winners: bool = False) -> 'SettlementPlan':
        option = bet.find_option(winning_option_id)
        if option is None:
            raise NotFound(f"Answer option {winning_option_id} not found on bet {bet.id}")

        total_pool = bet.wager_amount * bet.participant_count
        winners = list(option.participants)

        if not winners:
            if refund_on_no_winners and total_pool > 0:
                return cls(
                    winning_option_id=winning_option_id,
                    total_pool=total_pool,
                    refunds=bet.all_participants,
                    refund_amount=bet.wager_amount
                )
            return cls(
                winning_option_id=winning_option_id,
                total_pool=total_pool,
                undistributed_remainder=total_pool
            )

        winnings_per_person, remainder = divmod(total_pool, len(winners))
        return cls(
            winning_option_id=winning_option_id,
            total_pool=total_pool,
            winners=winners,
            winnings_per_person=winnings_per_person,
            undistributed_remainder=remainder
        )
