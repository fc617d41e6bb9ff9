"""Resolve bet use case (settlement and payouts)"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import sentry_sdk
from sentry_sdk import start_span

from bet_ledger.application.dto.resolve_bet_request import ResolveBetRequest
from bet_ledger.application.dto.settlement_response import SettlementResponse
from bet_ledger.application.ports.bet_repository_port import BetRepositoryPort
from bet_ledger.application.ports.message_publisher_port import MessagePublisherPort
from bet_ledger.application.ports.points_ledger_port import PointsLedgerPort
from bet_ledger.application.use_cases.bet_mutation import DEFAULT_CAS_ATTEMPTS, mutate_bet
from bet_ledger.domain import events
from bet_ledger.domain.entities.bet import Bet, BetStatus, PayoutStatus
from bet_ledger.domain.entities.settlement_plan import SettlementPlan
from bet_ledger.domain.errors import BetLedgerError, InvalidState, PartialSettlementFailure, Unauthorized
from bet_ledger.metrics import BetMetrics

logger = logging.getLogger(__name__)


class ResolveBetUseCase:
    """Completes a locked bet and pays the winners.

    The status write is the serialization point: the bet moves to
    completed with a compare-and-swap before any coins move, so of two
    racing resolutions exactly one pays out and the other sees
    InvalidState. Credits are keyed per (bet, recipient) so retries never
    pay twice. Credits that still fail are recorded on the bet and
    reported with PartialSettlementFailure; credits already applied are
    never reverted.
    """

    def __init__(
        self,
        bet_repository: BetRepositoryPort,
        points_ledger: PointsLedgerPort,
        message_publisher: MessagePublisherPort,
        clock: Callable[[], float] = time.time,
        cas_attempts: int = DEFAULT_CAS_ATTEMPTS,
        payout_retry_attempts: int = 3,
        refund_on_no_winners: bool = False
    ):
        self.bet_repository = bet_repository
        self.points_ledger = points_ledger
        self.message_publisher = message_publisher
        self.clock = clock
        self.cas_attempts = cas_attempts
        self.payout_retry_attempts = max(1, payout_retry_attempts)
        self.refund_on_no_winners = refund_on_no_winners

    def execute(self, request: ResolveBetRequest) -> SettlementResponse:
        """Execute settlement"""
        request.validate()

        def claim(bet: Bet) -> SettlementPlan:
            if request.requester_id != bet.creator_id:
                raise Unauthorized("Only the bet creator can release results")
            now = self.clock()
            if bet.status == BetStatus.OPEN and bet.is_expired(now):
                bet.lock(now)
            if bet.status != BetStatus.LOCKED:
                raise InvalidState(
                    f"Bet {bet.id} is {bet.status.value}; it must be locked before results are released"
                )
            plan = SettlementPlan.for_bet(bet, request.winning_option_id, self.refund_on_no_winners)
            bet.complete(
                plan.winning_option_id,
                plan.winnings_per_person,
                plan.undistributed_remainder,
                now,
                refunded=plan.refunded
            )
            return plan

        with start_span(op="db.update", name="Mark bet completed") as span:
            span.set_data("db.system", "mongodb")
            bet, plan = mutate_bet(self.bet_repository, request.bet_id, claim, self.cas_attempts)

        logger.info(
            f"Bet resolved: id={bet.id}, winner={plan.winning_option_id}, winners={len(plan.winners)}, "
            f"pool={plan.total_pool}, per_person={plan.winnings_per_person}, "
            f"undistributed={plan.undistributed_remainder}"
        )

        recipients, amount, reason_prefix = self._payout_targets(bet)
        paid, failed = self._pay(bet, recipients, amount, reason_prefix)
        try:
            bet = self._record(bet, paid, failed)
        except BetLedgerError as e:
            # Bet stays completed with payout_status pending; retry_failed_payouts picks it up
            logger.error(
                f"Could not record payouts for bet {bet.id}: {e}; "
                f"paid={', '.join(paid) or '-'}, unpaid={', '.join(failed) or '-'}"
            )
            sentry_sdk.capture_exception(e)

        BetMetrics.settled(bet.payout_status.value, amount * len(paid))
        self._publish(events.BET_RESOLVED, {
            "bet_id": bet.id,
            "group_id": bet.group_id,
            "question": bet.question,
            "winning_option_id": plan.winning_option_id,
            "winners_count": len(plan.winners),
            "winners": plan.winners,
            "winnings_per_person": plan.winnings_per_person,
            "refunded": plan.refunded
        })

        if failed:
            raise PartialSettlementFailure(bet.id, paid, failed)
        return self._summary(bet, plan.winners, paid, failed)

    def retry_failed_payouts(self, bet_id: str) -> SettlementResponse:
        """Re-attempt the credits a previous payout pass could not apply.

        A bet still pending never had its payout pass recorded, so every
        recipient not yet marked paid is credited again; idempotency keys
        keep the ones that did land from being paid twice.
        """
        bet = self.bet_repository.get(bet_id)
        if bet.status != BetStatus.COMPLETED:
            raise InvalidState(f"Bet {bet_id} is {bet.status.value}; only completed bets have payouts")

        winners = self._winners(bet)
        recipients, amount, reason_prefix = self._payout_targets(bet)
        if bet.payout_status == PayoutStatus.PENDING:
            pending = [user_id for user_id in recipients if user_id not in bet.paid_winners]
        elif bet.failed_payouts:
            pending = list(bet.failed_payouts)
        else:
            return self._summary(bet, winners, bet.paid_winners, [])

        logger.info(f"Retrying {len(pending)} payout(s) for bet {bet_id} ({bet.payout_status.value})")
        paid, failed = self._pay(bet, pending, amount, reason_prefix)
        bet = self._record(bet, paid, failed)
        BetMetrics.settled(bet.payout_status.value, amount * len(paid))

        if failed:
            raise PartialSettlementFailure(bet.id, bet.paid_winners, failed)
        return self._summary(bet, winners, bet.paid_winners, [])

    def _payout_targets(self, bet: Bet) -> Tuple[List[str], int, str]:
        if bet.refunded:
            return bet.all_participants, bet.wager_amount, "refund"
        return self._winners(bet), bet.winnings_per_person or 0, "payout"

    def _winners(self, bet: Bet) -> List[str]:
        option = bet.find_option(bet.winning_option_id)
        return list(option.participants) if option else []

    def _pay(self, bet: Bet, recipients: List[str], amount: int, reason_prefix: str) -> Tuple[List[str], List[str]]:
        if amount <= 0:
            return [], []

        paid, failed = [], []
        with start_span(op="ledger.credit", name="Pay out bet") as span:
            span.set_data("recipients", len(recipients))
            span.set_data("amount", amount)
            for user_id in recipients:
                if self._credit(bet, user_id, amount, reason_prefix):
                    paid.append(user_id)
                else:
                    failed.append(user_id)
        return paid, failed

    def _credit(self, bet: Bet, user_id: str, amount: int, reason_prefix: str) -> bool:
        key = f"{reason_prefix}:{bet.id}:{user_id}"
        for attempt in range(1, self.payout_retry_attempts + 1):
            try:
                self.points_ledger.credit(user_id, amount, f"bet:{bet.id}:{reason_prefix}", idempotency_key=key)
                logger.info(f"Credited {amount} to {user_id} for bet {bet.id} ({reason_prefix})")
                return True
            except Exception as e:
                if attempt < self.payout_retry_attempts:
                    logger.warning(f"Credit to {user_id} for bet {bet.id} failed ({attempt}): {e}; retrying")
                    continue
                logger.error(
                    f"Credit to {user_id} for bet {bet.id} failed after {attempt} attempt(s): {e}; "
                    f"flagged for reconciliation"
                )
                sentry_sdk.capture_exception(e)
        return False

    def _record(self, bet: Bet, paid: List[str], failed: List[str]) -> Bet:
        if failed:
            logger.error(f"Bet {bet.id} has {len(failed)} unpaid recipient(s): {', '.join(failed)}")
        bet, _ = mutate_bet(
            self.bet_repository,
            bet.id,
            lambda current: current.record_payouts(paid, failed, self.clock()),
            self.cas_attempts
        )
        return bet

    def _summary(self, bet: Bet, winners: List[str], paid: List[str], failed: List[str]) -> SettlementResponse:
        return SettlementResponse(
            bet_id=bet.id,
            winning_option_id=bet.winning_option_id,
            total_pool=bet.total_pool,
            winnings_per_person=bet.winnings_per_person or 0,
            undistributed_remainder=bet.undistributed_remainder,
            payout_status=bet.payout_status.value,
            winners=list(winners),
            paid_winners=list(paid),
            failed_winners=list(failed),
            refunded=bet.refunded
        )

    def _publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        with start_span(op="mq.publish", name=f"Publish {event_type}") as mq_span:
            try:
                self.message_publisher.publish_event(event_type, payload)
                mq_span.set_tag("mq.published", "true")
            except Exception as mq_error:
                logger.error(f"Failed to publish {event_type} for bet {payload.get('bet_id')}: {mq_error}")
                sentry_sdk.capture_exception(mq_error)
                mq_span.set_tag("mq.published", "false")
