"""Staking: debit, record, compensate"""
import threading

import pytest

from bet_ledger.application.dto.create_bet_request import CreateBetRequest
from bet_ledger.application.dto.place_bet_request import PlaceBetRequest
from bet_ledger.application.use_cases.bet_lifecycle_use_case import BetLifecycleUseCase
from bet_ledger.application.use_cases.place_bet_use_case import PlaceBetUseCase
from bet_ledger.domain import events
from bet_ledger.domain.entities.bet import BetStatus
from bet_ledger.domain.errors import (
    AlreadyStaked,
    Expired,
    InsufficientFunds,
    InvalidState,
    NotFound,
    Unauthorized,
    Unavailable,
    ValidationError,
)

from tests.conftest import HOUR
from tests.fakes import StaticMembership, run_concurrently


class TestPlaceBet:
    def test_stake_debits_and_records(self, make_bet, join, ledger):
        bet = make_bet(wager_amount=100)

        updated = join(bet.id, "u1", "option_1")

        assert updated.find_option("option_1").participants == ["u1"]
        assert updated.total_pool == 100
        assert ledger.get_balance("u1") == 900

    def test_pool_tracks_every_stake(self, make_bet, join):
        bet = make_bet(wager_amount=100)
        join(bet.id, "u1", "option_1")
        join(bet.id, "u2", "option_2")
        updated = join(bet.id, "u3", "option_2")

        assert updated.total_pool == 300
        assert updated.find_option("option_2").participants == ["u2", "u3"]

    def test_second_stake_is_rejected_without_charging(self, make_bet, join, ledger):
        bet = make_bet(wager_amount=100)
        join(bet.id, "u1", "option_1")

        with pytest.raises(AlreadyStaked):
            join(bet.id, "u1", "option_2")
        assert ledger.get_balance("u1") == 900

    def test_insufficient_funds_leaves_bet_untouched(self, make_bet, join, ledger, repository):
        bet = make_bet(wager_amount=100)
        ledger.balances["poor"] = 40

        with pytest.raises(InsufficientFunds):
            join(bet.id, "poor", "option_1")
        assert ledger.get_balance("poor") == 40
        assert repository.get(bet.id).participant_count == 0

    def test_unknown_bet_and_option(self, make_bet, join):
        bet = make_bet()
        with pytest.raises(NotFound):
            join("missing", "u1", "option_1")
        with pytest.raises(NotFound):
            join(bet.id, "u1", "option_42")

    def test_missing_fields(self, place_bet):
        with pytest.raises(ValidationError):
            place_bet.execute(PlaceBetRequest(bet_id="b", user_id="", option_id="option_1"))

    def test_locked_bet(self, make_bet, join, lifecycle, ledger):
        bet = make_bet()
        lifecycle.lock_bet(bet.id, "creator")
        with pytest.raises(InvalidState):
            join(bet.id, "u1", "option_1")
        assert ledger.get_balance("u1") == 1000

    def test_expired_bet_is_rejected_and_locked(self, make_bet, join, repository, publisher, clock, ledger):
        bet = make_bet(expires_in=HOUR)
        clock.advance(HOUR)

        with pytest.raises(Expired):
            join(bet.id, "u1", "option_1")

        assert repository.get(bet.id).status == BetStatus.LOCKED
        assert publisher.of_type(events.BET_LOCKED)[0]["trigger"] == "expiry"
        assert ledger.get_balance("u1") == 1000

    def test_non_member_cannot_stake(self, repository, ledger, publisher, clock):
        lifecycle = BetLifecycleUseCase(
            repository, publisher,
            group_membership=StaticMembership({"group-1": {"creator", "member"}}),
            clock=clock
        )
        place_bet = PlaceBetUseCase(repository, ledger, lifecycle)
        bet = lifecycle.create_bet(CreateBetRequest(
            group_id="group-1", creator_id="creator", question="q?",
            answer_options=["a", "b"], wager_amount=10, expires_at=clock() + HOUR
        ))

        with pytest.raises(Unauthorized):
            place_bet.execute(PlaceBetRequest(bet.id, "outsider", "option_1"))
        place_bet.execute(PlaceBetRequest(bet.id, "member", "option_1"))

class TestCompensation:
    def test_failed_commit_refunds_the_stake(self, make_bet, join, ledger, repository):
        bet = make_bet(wager_amount=100)
        repository.replace_failures = 1

        with pytest.raises(Unavailable):
            join(bet.id, "u1", "option_1")

        assert ledger.get_balance("u1") == 1000
        assert repository.get(bet.id).participant_count == 0
        reversal = [key for _, _, _, key in ledger.entries if key and key.startswith("reverse:stake:")]
        assert len(reversal) == 1

    def test_user_can_stake_again_after_compensation(self, make_bet, join, ledger, repository):
        bet = make_bet(wager_amount=100)
        repository.replace_failures = 1
        with pytest.raises(Unavailable):
            join(bet.id, "u1", "option_1")

        join(bet.id, "u1", "option_1")
        assert ledger.get_balance("u1") == 900

    def test_failed_refund_is_reported_and_original_error_raised(self, make_bet, join, ledger, repository):
        bet = make_bet(wager_amount=100)
        repository.replace_failures = 1
        ledger.failing_credit_users.add("u1")

        with pytest.raises(Unavailable, match="write bet"):
            join(bet.id, "u1", "option_1")
        assert ledger.get_balance("u1") == 900


class TestConcurrentStakes:
    def test_same_user_racing_from_two_processes_is_charged_once(self, make_bet, repository, ledger, lifecycle):
        bet = make_bet(wager_amount=100)
        # Separate instances share storage but not in-process locks
        first = PlaceBetUseCase(repository, ledger, lifecycle, cas_attempts=50)
        second = PlaceBetUseCase(repository, ledger, lifecycle, cas_attempts=50)
        # Both attempts pass validation and debit before either commits
        ledger.debit_barrier = threading.Barrier(2)

        outcomes = run_concurrently(
            lambda: first.execute(PlaceBetRequest(bet.id, "u1", "option_1")),
            lambda: second.execute(PlaceBetRequest(bet.id, "u1", "option_2")),
        )

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        failures = [o for o in outcomes if isinstance(o, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1 and isinstance(failures[0], AlreadyStaked)

        stored = repository.get(bet.id)
        assert stored.participant_count == 1
        assert stored.total_pool == 100
        assert ledger.get_balance("u1") == 900

    def test_same_user_racing_with_one_wager_left_gets_already_staked(self, make_bet, place_bet, ledger, repository):
        bet = make_bet(wager_amount=1000)
        outcome = {}

        def second_attempt():
            try:
                place_bet.execute(PlaceBetRequest(bet.id, "u1", "option_2"))
            except Exception as e:
                outcome["error"] = e

        # The second attempt starts while the first is inside its debit
        racer = threading.Thread(target=second_attempt)
        ledger.before_debit = racer.start
        place_bet.execute(PlaceBetRequest(bet.id, "u1", "option_1"))
        racer.join(timeout=5)

        assert isinstance(outcome["error"], AlreadyStaked)
        assert ledger.get_balance("u1") == 0
        assert repository.get(bet.id).option_of("u1").id == "option_1"

    def test_balance_spent_by_another_process_on_same_bet_is_already_staked(
        self, make_bet, repository, ledger, lifecycle
    ):
        bet = make_bet(wager_amount=1000)
        first = PlaceBetUseCase(repository, ledger, lifecycle)
        second = PlaceBetUseCase(repository, ledger, lifecycle)
        # The other process commits its stake between this one's checks and its debit
        ledger.before_debit = lambda: first.execute(PlaceBetRequest(bet.id, "u1", "option_1"))

        with pytest.raises(AlreadyStaked):
            second.execute(PlaceBetRequest(bet.id, "u1", "option_2"))

        assert ledger.get_balance("u1") == 0
        assert repository.get(bet.id).participant_count == 1

    def test_low_balance_on_untouched_bet_is_still_insufficient_funds(self, make_bet, join):
        bet = make_bet(wager_amount=1500)
        with pytest.raises(InsufficientFunds):
            join(bet.id, "u1", "option_1")

    def test_distinct_users_all_land(self, make_bet, place_bet, ledger, repository):
        bet = make_bet(options=("A", "B", "C"), wager_amount=10)
        users = [f"user-{i}" for i in range(8)]

        outcomes = run_concurrently(*[
            (lambda u=u, i=i: place_bet.execute(PlaceBetRequest(bet.id, u, f"option_{i % 3 + 1}")))
            for i, u in enumerate(users)
        ])

        assert not [o for o in outcomes if isinstance(o, Exception)]
        stored = repository.get(bet.id)
        assert sorted(stored.all_participants) == sorted(users)
        assert stored.total_pool == 80
        assert all(ledger.get_balance(u) == 990 for u in users)
