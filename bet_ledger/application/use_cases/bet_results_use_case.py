"""Read-only projections of a bet: results and participation stats"""
from bet_ledger.application.dto.bet_results_response import BetResultsResponse
from bet_ledger.application.dto.bet_stats_response import BetStatsResponse, OptionStats
from bet_ledger.application.ports.bet_repository_port import BetRepositoryPort
from bet_ledger.domain.entities.bet import BetStatus
from bet_ledger.domain.errors import ResultsNotAvailable


def percentage(count: int, total: int) -> int:
    """100 * count / total rounded half up, 0 when total is 0"""
    if total <= 0:
        return 0
    return (200 * count + total) // (2 * total)


class BetResultsUseCase:
    """Results of completed bets and per-option stats of any bet"""

    def __init__(self, bet_repository: BetRepositoryPort):
        self.bet_repository = bet_repository

    def get_bet_results(self, bet_id: str) -> BetResultsResponse:
        bet = self.bet_repository.get(bet_id)
        if bet.status != BetStatus.COMPLETED:
            raise ResultsNotAvailable(f"Results for bet {bet_id} are not available yet")

        option = bet.find_option(bet.winning_option_id)
        return BetResultsResponse(
            bet_id=bet.id,
            question=bet.question,
            total_pool=bet.total_pool,
            winning_option_id=option.id,
            winning_option_text=option.text,
            winnings_per_person=bet.winnings_per_person or 0,
            undistributed_remainder=bet.undistributed_remainder,
            payout_status=bet.payout_status.value,
            winners=list(option.participants),
            resolved_at=bet.resolved_at
        )

    def get_bet_stats(self, bet_id: str) -> BetStatsResponse:
        bet = self.bet_repository.get(bet_id)
        total = bet.participant_count
        return BetStatsResponse(
            bet_id=bet.id,
            question=bet.question,
            status=bet.status.value,
            total_pool=bet.total_pool,
            total_participants=total,
            option_stats=[
                OptionStats(
                    id=option.id,
                    text=option.text,
                    participant_count=len(option.participants),
                    percentage=percentage(len(option.participants), total)
                )
                for option in bet.answer_options
            ]
        )
