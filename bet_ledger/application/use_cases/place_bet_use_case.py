"""Place bet use case (staking)"""
import logging
import uuid
from contextlib import contextmanager
from threading import Lock
from typing import Dict, List

import sentry_sdk
from sentry_sdk import start_span

from bet_ledger.application.dto.place_bet_request import PlaceBetRequest
from bet_ledger.application.ports.bet_repository_port import BetRepositoryPort
from bet_ledger.application.ports.points_ledger_port import PointsLedgerPort
from bet_ledger.application.use_cases.bet_lifecycle_use_case import BetLifecycleUseCase
from bet_ledger.application.use_cases.bet_mutation import DEFAULT_CAS_ATTEMPTS, mutate_bet
from bet_ledger.domain.entities.bet import Bet, BetStatus
from bet_ledger.domain.errors import AlreadyStaked, BetLedgerError, Expired, InsufficientFunds
from bet_ledger.metrics import BetMetrics

logger = logging.getLogger(__name__)


class PlaceBetUseCase:
    """Joins a user to one option of a bet and takes their stake.

    Coins are debited before the stake is recorded so insufficient funds
    fail early. The stake is then written with a compare-and-swap on the
    bet document, re-checking every join rule against the version being
    committed. If recording fails for any reason the debit is reversed
    with a compensating credit.

    Attempts by the same user on the same bet run one at a time within a
    process, so a second attempt sees the first one's stake instead of
    its debit.
    """

    def __init__(
        self,
        bet_repository: BetRepositoryPort,
        points_ledger: PointsLedgerPort,
        lifecycle: BetLifecycleUseCase,
        cas_attempts: int = DEFAULT_CAS_ATTEMPTS
    ):
        self.bet_repository = bet_repository
        self.points_ledger = points_ledger
        self.lifecycle = lifecycle
        self.cas_attempts = cas_attempts
        self._stake_locks: Dict[str, List] = {}
        self._stake_locks_guard = Lock()

    @property
    def clock(self):
        return self.lifecycle.clock

    @contextmanager
    def _stake_lock(self, bet_id: str, user_id: str):
        key = f"{bet_id}:{user_id}"
        with self._stake_locks_guard:
            entry = self._stake_locks.setdefault(key, [Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._stake_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._stake_locks[key]

    def execute(self, request: PlaceBetRequest) -> Bet:
        """Execute the stake; returns the bet as committed"""
        request.validate()
        with self._stake_lock(request.bet_id, request.user_id):
            return self._place(request)

    def _place(self, request: PlaceBetRequest) -> Bet:
        bet = self.bet_repository.get(request.bet_id)

        try:
            self.lifecycle.require_member(bet.group_id, request.user_id)
            bet.check_can_join(request.user_id, request.option_id, self.clock())
        except BetLedgerError as e:
            self._rejected(request, bet, e)
            raise

        stake_key = f"stake:{bet.id}:{request.user_id}:{uuid.uuid4().hex}"
        try:
            with start_span(op="ledger.debit", name="Debit stake") as span:
                span.set_data("amount", bet.wager_amount)
                self.points_ledger.debit(
                    request.user_id, bet.wager_amount, f"bet:{bet.id}", idempotency_key=stake_key
                )
        except InsufficientFunds as e:
            # Another attempt may have spent the balance on this very bet
            if self.bet_repository.get(request.bet_id).option_of(request.user_id) is not None:
                already = AlreadyStaked(f"User {request.user_id} has already placed a bet on {bet.id}")
                self._rejected(request, bet, already)
                raise already from e
            self._rejected(request, bet, e)
            raise
        except BetLedgerError as e:
            self._rejected(request, bet, e)
            raise

        try:
            with start_span(op="db.update", name="Record stake") as span:
                span.set_data("db.system", "mongodb")
                bet, _ = mutate_bet(
                    self.bet_repository,
                    request.bet_id,
                    lambda current: current.add_participant(request.user_id, request.option_id, self.clock()),
                    self.cas_attempts
                )
        except Exception as e:
            self._compensate(request, bet, stake_key)
            if isinstance(e, BetLedgerError):
                self._rejected(request, bet, e)
            raise

        logger.info(
            f"Stake placed: bet={bet.id}, user={request.user_id}, option={request.option_id}, "
            f"amount={bet.wager_amount}, pool={bet.total_pool}"
        )
        BetMetrics.stake_placed(bet.wager_amount)
        return bet

    def _compensate(self, request: PlaceBetRequest, bet: Bet, stake_key: str) -> None:
        """Give the debited stake back after the stake could not be recorded"""
        try:
            with start_span(op="ledger.credit", name="Compensate stake"):
                self.points_ledger.credit(
                    request.user_id,
                    bet.wager_amount,
                    f"bet:{bet.id}:stake_reversed",
                    idempotency_key=f"reverse:{stake_key}"
                )
            logger.info(f"Stake reversed: bet={bet.id}, user={request.user_id}, amount={bet.wager_amount}")
            BetMetrics.compensation(succeeded=True)
        except Exception as e:
            logger.error(
                f"Failed to reverse stake for user {request.user_id} on bet {bet.id} "
                f"(key={stake_key}): {e}; manual reconciliation required"
            )
            sentry_sdk.capture_exception(e)
            BetMetrics.compensation(succeeded=False)

    def _rejected(self, request: PlaceBetRequest, bet: Bet, error: BetLedgerError) -> None:
        logger.warning(f"Stake rejected: bet={request.bet_id}, user={request.user_id}, reason={error.kind}")
        BetMetrics.stake_rejected(error.kind)
        if isinstance(error, Expired) and bet.status == BetStatus.OPEN:
            try:
                self.lifecycle.lock_if_expired(bet)
            except BetLedgerError as lock_error:
                logger.warning(f"Could not lock expired bet {bet.id}: {lock_error}")
