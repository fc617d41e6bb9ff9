"""Bet lifecycle use case: create, read, edit, lock, delete, expiry handling"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import sentry_sdk
from sentry_sdk import start_span

from bet_ledger.application.dto.create_bet_request import CreateBetRequest
from bet_ledger.application.dto.edit_bet_request import EditBetRequest
from bet_ledger.application.ports.bet_repository_port import BetRepositoryPort
from bet_ledger.application.ports.group_membership_port import GroupMembershipPort
from bet_ledger.application.ports.message_publisher_port import MessagePublisherPort
from bet_ledger.application.use_cases.bet_mutation import DEFAULT_CAS_ATTEMPTS, NO_CHANGE, mutate_bet
from bet_ledger.domain import events
from bet_ledger.domain.entities.bet import AnswerOption, Bet, BetStatus
from bet_ledger.domain.errors import (
    ConcurrentModification,
    InvalidState,
    Unauthorized,
    Unavailable,
    ValidationError,
)
from bet_ledger.metrics import BetMetrics

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_NOTICE_HOURS = (24, 3)


class BetLifecycleUseCase:
    """Validates and executes bet state transitions (open -> locked -> completed).

    Completion itself is handled by ResolveBetUseCase; this class owns
    creation, edits, deletion, and the open -> locked transition, both
    explicit and on expiry.
    """

    def __init__(
        self,
        bet_repository: BetRepositoryPort,
        message_publisher: MessagePublisherPort,
        group_membership: Optional[GroupMembershipPort] = None,
        clock: Callable[[], float] = time.time,
        cas_attempts: int = DEFAULT_CAS_ATTEMPTS,
        expiry_notice_hours: Sequence[int] = DEFAULT_EXPIRY_NOTICE_HOURS
    ):
        self.bet_repository = bet_repository
        self.message_publisher = message_publisher
        self.group_membership = group_membership
        self.clock = clock
        self.cas_attempts = cas_attempts
        self.expiry_notice_hours = sorted(set(expiry_notice_hours), reverse=True)

    def create_bet(self, request: CreateBetRequest) -> Bet:
        now = self.clock()
        request.validate(now)
        self.require_member(request.group_id, request.creator_id)

        bet = Bet(
            group_id=request.group_id,
            creator_id=request.creator_id,
            question=request.question.strip(),
            answer_options=[
                AnswerOption(id=f"option_{index}", text=text.strip())
                for index, text in enumerate(request.answer_options, start=1)
            ],
            wager_amount=request.wager_amount,
            expires_at=request.expires_at,
            created_at=now,
            updated_at=now
        )

        with start_span(op="db.insert", name="Store new bet") as span:
            span.set_data("db.system", "mongodb")
            bet = self.bet_repository.create(bet)

        logger.info(
            f"Bet created: id={bet.id}, group={bet.group_id}, creator={bet.creator_id}, "
            f"wager={bet.wager_amount}, options={len(bet.answer_options)}"
        )
        BetMetrics.bet_created()
        self._publish(events.BET_CREATED, {
            "bet_id": bet.id,
            "group_id": bet.group_id,
            "creator_id": bet.creator_id,
            "question": bet.question,
            "expires_at": bet.expires_at
        })
        return bet

    def get_bet(self, bet_id: str) -> Bet:
        """Get a bet, locking it first if it has expired"""
        return self.lock_if_expired(self.bet_repository.get(bet_id))

    def edit_bet(self, request: EditBetRequest) -> Bet:
        request.validate()

        def apply(bet: Bet):
            if request.requester_id is not None and request.requester_id != bet.creator_id:
                raise Unauthorized("Only the bet creator can edit the bet")
            now = self.clock()
            if bet.status == BetStatus.OPEN and bet.is_expired(now):
                raise InvalidState(f"Bet {bet.id} has expired and can no longer be edited")
            question = request.question.strip() if request.question is not None else None
            option_texts = {k: v.strip() for k, v in request.option_texts.items()}
            bet.edit(question, option_texts, now)

        bet, _ = mutate_bet(self.bet_repository, request.bet_id, apply, self.cas_attempts)
        logger.info(f"Bet edited: id={bet.id}")
        return bet

    def lock_bet(self, bet_id: str, requester_id: str) -> Bet:
        """Explicit lock by the creator"""

        def apply(bet: Bet):
            if requester_id != bet.creator_id:
                raise Unauthorized("Only the bet creator can lock the bet")
            bet.lock(self.clock())

        bet, _ = mutate_bet(self.bet_repository, bet_id, apply, self.cas_attempts)
        self._announce_lock(bet, trigger="manual")
        return bet

    def delete_bet(self, bet_id: str, requester_id: str) -> None:
        """Delete an open bet nobody has staked on yet"""
        for attempt in range(1, self.cas_attempts + 1):
            bet = self.bet_repository.get(bet_id)
            if requester_id != bet.creator_id:
                raise Unauthorized("Only the bet creator can delete the bet")

            bet = self.lock_if_expired(bet)
            if bet.status != BetStatus.OPEN:
                raise InvalidState(f"Bet {bet_id} is {bet.status.value}; only open bets can be deleted")
            if bet.participant_count > 0:
                raise InvalidState(f"Bet {bet_id} already has participants and cannot be deleted")

            try:
                self.bet_repository.delete(bet_id, expected_version=bet.version)
            except ConcurrentModification:
                logger.info(f"Bet {bet_id} changed while deleting, retrying ({attempt}/{self.cas_attempts})")
                continue

            logger.info(f"Bet deleted: id={bet_id}, by={requester_id}")
            return

        raise Unavailable(f"Bet {bet_id} is under heavy contention, try again")

    def list_group_bets(self, group_id: str, status: Optional[str] = None) -> List[Bet]:
        return self._refresh_and_filter(self.bet_repository.list_by_group(group_id), status)

    def list_user_bets(self, user_id: str, status: Optional[str] = None) -> List[Bet]:
        return self._refresh_and_filter(self.bet_repository.list_by_user(user_id), status)

    def lock_if_expired(self, bet: Bet) -> Bet:
        """Apply the open -> locked transition if the bet's expiry has passed"""
        bet, _ = self._lock_expired(bet, self.clock())
        return bet

    def lock_expired_bets(self, now: Optional[float] = None) -> List[str]:
        """Sweep: lock every open bet whose expiry has passed. Returns locked bet ids."""
        now = self.clock() if now is None else now
        locked_ids = []
        for bet in self.bet_repository.list_open_expiring_before(now):
            try:
                bet, locked_now = self._lock_expired(bet, now)
            except Unavailable as e:
                logger.warning(f"Could not lock expired bet {bet.id}: {e}")
                continue
            if locked_now:
                locked_ids.append(bet.id)

        if locked_ids:
            logger.info(f"Expiry sweep locked {len(locked_ids)} bet(s)")
        return locked_ids

    def notify_expiring_bets(self, now: Optional[float] = None) -> List[str]:
        """Emit bet.expiring once per notice window. Returns the notified bet ids."""
        if not self.expiry_notice_hours:
            return []
        now = self.clock() if now is None else now
        horizon = now + self.expiry_notice_hours[0] * 3600

        notified = []
        for bet in self.bet_repository.list_open_expiring_before(horizon):
            if bet.expires_at <= now:
                continue

            hours_left = (bet.expires_at - now) / 3600
            windows = [w for w in self.expiry_notice_hours if hours_left <= w]
            if not windows or all(w in bet.expiry_notices for w in windows):
                continue

            def mark(current: Bet, windows=windows):
                if current.status != BetStatus.OPEN or all(w in current.expiry_notices for w in windows):
                    return NO_CHANGE
                current.expiry_notices = sorted(set(current.expiry_notices) | set(windows), reverse=True)
                return min(windows)

            try:
                bet, window = mutate_bet(self.bet_repository, bet.id, mark, self.cas_attempts)
            except Unavailable as e:
                logger.warning(f"Could not record expiry notice for bet {bet.id}: {e}")
                continue
            if window is NO_CHANGE:
                continue

            self._publish(events.BET_EXPIRING, {
                "bet_id": bet.id,
                "group_id": bet.group_id,
                "creator_id": bet.creator_id,
                "question": bet.question,
                "expires_at": bet.expires_at,
                "expires_in_hours": window
            })
            notified.append(bet.id)

        return notified

    def require_member(self, group_id: str, user_id: str) -> None:
        if self.group_membership is None:
            return
        with start_span(op="http.client", name="Check group membership"):
            is_member = self.group_membership.is_member(group_id, user_id)
        if not is_member:
            raise Unauthorized(f"User {user_id} is not a member of group {group_id}")

    def _lock_expired(self, bet: Bet, now: float) -> Tuple[Bet, bool]:
        """Returns the current bet and whether this call locked it"""
        if bet.status != BetStatus.OPEN or not bet.is_expired(now):
            return bet, False

        def apply(current: Bet):
            if current.status != BetStatus.OPEN or not current.is_expired(now):
                return NO_CHANGE
            current.lock(now)

        locked, result = mutate_bet(self.bet_repository, bet.id, apply, self.cas_attempts)
        if result is NO_CHANGE:
            return locked, False
        self._announce_lock(locked, trigger="expiry")
        return locked, True

    def _refresh_and_filter(self, bets: List[Bet], status: Optional[str]) -> List[Bet]:
        if status is not None and status not in {s.value for s in BetStatus}:
            raise ValidationError(f"Unknown bet status: {status}")
        refreshed = []
        for bet in bets:
            try:
                bet = self.lock_if_expired(bet)
            except Unavailable as e:
                logger.warning(f"Could not lock expired bet {bet.id} while listing: {e}")
            if status is None or bet.status.value == status:
                refreshed.append(bet)
        return refreshed

    def _announce_lock(self, bet: Bet, trigger: str) -> None:
        logger.info(f"Bet locked: id={bet.id}, trigger={trigger}")
        BetMetrics.bet_locked(trigger)
        self._publish(events.BET_LOCKED, {
            "bet_id": bet.id,
            "group_id": bet.group_id,
            "creator_id": bet.creator_id,
            "question": bet.question,
            "trigger": trigger
        })

    def _publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        with start_span(op="mq.publish", name=f"Publish {event_type}") as mq_span:
            try:
                self.message_publisher.publish_event(event_type, payload)
                mq_span.set_tag("mq.published", "true")
            except Exception as mq_error:
                logger.error(f"Failed to publish {event_type} for bet {payload.get('bet_id')}: {mq_error}")
                sentry_sdk.capture_exception(mq_error)
                mq_span.set_tag("mq.published", "false")
