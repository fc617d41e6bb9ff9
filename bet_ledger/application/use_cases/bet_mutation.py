"""Optimistic read-modify-write on a bet document"""
import logging
from typing import Any, Callable, Tuple

from bet_ledger.application.ports.bet_repository_port import BetRepositoryPort
from bet_ledger.domain.entities.bet import Bet
from bet_ledger.domain.errors import ConcurrentModification, Unavailable

logger = logging.getLogger(__name__)

DEFAULT_CAS_ATTEMPTS = 5

# A mutation returning this leaves the stored bet untouched
NO_CHANGE = object()


def mutate_bet(
    repository: BetRepositoryPort,
    bet_id: str,
    mutation: Callable[[Bet], Any],
    attempts: int = DEFAULT_CAS_ATTEMPTS
) -> Tuple[Bet, Any]:
    """Load the bet, apply mutation, write it back if nobody else wrote in between.

    The mutation sees a fresh copy on every attempt, so its checks always run
    against the version being committed. Domain errors raised by the mutation
    propagate unchanged. Returns the stored bet and the mutation's result.
    """
    for attempt in range(1, attempts + 1):
        bet = repository.get(bet_id)
        result = mutation(bet)
        if result is NO_CHANGE:
            return bet, result
        try:
            return repository.replace(bet, expected_version=bet.version), result
        except ConcurrentModification:
            logger.info(f"Concurrent write on bet {bet_id}, retrying ({attempt}/{attempts})")

    raise Unavailable(f"Bet {bet_id} is under heavy contention, try again")
