"""Settlement: completing a bet and paying out the pool"""
import pytest

from bet_ledger.application.dto.resolve_bet_request import ResolveBetRequest
from bet_ledger.application.use_cases.resolve_bet_use_case import ResolveBetUseCase
from bet_ledger.domain import events
from bet_ledger.domain.entities.bet import BetStatus, PayoutStatus
from bet_ledger.domain.errors import InvalidState, NotFound, PartialSettlementFailure, Unauthorized

from tests.conftest import HOUR
from tests.fakes import run_concurrently


@pytest.fixture
def staked_bet(make_bet, join, lifecycle):
    """Locked bet with stakes laid out as {option_id: [users]}"""
    def _staked_bet(layout, wager_amount=100, lock=True):
        bet = make_bet(options=("A", "B", "C"), wager_amount=wager_amount)
        for option_id, users in layout.items():
            for user_id in users:
                join(bet.id, user_id, option_id)
        if lock:
            lifecycle.lock_bet(bet.id, "creator")
        return bet
    return _staked_bet


def resolve_request(bet, option_id="option_1", requester_id="creator"):
    return ResolveBetRequest(bet_id=bet.id, requester_id=requester_id, winning_option_id=option_id)


class TestPayoutSplit:
    def test_two_winners_split_everything(self, staked_bet, resolve, ledger, repository):
        bet = staked_bet({"option_1": ["w1", "w2"]})

        result = resolve.execute(resolve_request(bet))

        assert result.total_pool == 200
        assert result.winnings_per_person == 100
        assert result.undistributed_remainder == 0
        assert result.payout_status == "settled"
        assert ledger.get_balance("w1") == 1000
        assert ledger.get_balance("w2") == 1000
        stored = repository.get(bet.id)
        assert stored.status == BetStatus.COMPLETED
        assert stored.payout_status == PayoutStatus.SETTLED

    def test_winners_share_losing_stakes(self, staked_bet, resolve, ledger):
        bet = staked_bet({"option_1": ["w1", "w2"], "option_2": ["l1", "l2", "l3"]}, wager_amount=50)

        result = resolve.execute(resolve_request(bet))

        assert result.total_pool == 250
        assert result.winnings_per_person == 125
        assert ledger.get_balance("w1") == 1075
        assert ledger.get_balance("l1") == 950

    def test_indivisible_pool_leaves_remainder(self, staked_bet, resolve, ledger):
        bet = staked_bet({"option_1": ["w1", "w2", "w3"], "option_2": ["l1", "l2"]}, wager_amount=50)

        result = resolve.execute(resolve_request(bet))

        assert result.total_pool == 250
        assert result.winnings_per_person == 83
        assert result.undistributed_remainder == 1
        paid = sum(sum(ledger.credits_to(u)) for u in ("w1", "w2", "w3"))
        assert paid == 249

    def test_no_winners_forfeits_pool(self, staked_bet, resolve, ledger, publisher):
        bet = staked_bet({"option_2": ["l1", "l2"]})

        result = resolve.execute(resolve_request(bet, "option_1"))

        assert result.winners == []
        assert result.winnings_per_person == 0
        assert result.undistributed_remainder == 200
        assert result.payout_status == "settled"
        assert ledger.credits_to("l1") == []
        resolved = publisher.of_type(events.BET_RESOLVED)[0]
        assert resolved["winners_count"] == 0

    def test_no_winners_refund_policy(self, staked_bet, repository, ledger, publisher, clock):
        resolve = ResolveBetUseCase(repository, ledger, publisher, clock=clock, refund_on_no_winners=True)
        bet = staked_bet({"option_2": ["l1", "l2"]})

        result = resolve.execute(resolve_request(bet, "option_1"))

        assert result.refunded
        assert result.undistributed_remainder == 0
        assert ledger.get_balance("l1") == 1000
        assert ledger.get_balance("l2") == 1000

    def test_resolved_event_carries_winners(self, staked_bet, resolve, publisher):
        bet = staked_bet({"option_1": ["w1"], "option_2": ["l1"]})
        resolve.execute(resolve_request(bet))

        payload = publisher.of_type(events.BET_RESOLVED)[0]
        assert payload["bet_id"] == bet.id
        assert payload["winners"] == ["w1"]
        assert payload["winnings_per_person"] == 200


class TestResolveRules:
    def test_only_creator_resolves(self, staked_bet, resolve):
        bet = staked_bet({"option_1": ["w1"]})
        with pytest.raises(Unauthorized):
            resolve.execute(resolve_request(bet, requester_id="w1"))

    def test_open_bet_cannot_be_resolved(self, staked_bet, resolve):
        bet = staked_bet({"option_1": ["w1"]}, lock=False)
        with pytest.raises(InvalidState):
            resolve.execute(resolve_request(bet))

    def test_expired_open_bet_is_locked_and_resolved(self, staked_bet, resolve, clock):
        bet = staked_bet({"option_1": ["w1"]}, lock=False)
        clock.advance(49 * HOUR)

        result = resolve.execute(resolve_request(bet))
        assert result.payout_status == "settled"

    def test_unknown_winning_option_leaves_bet_locked(self, staked_bet, resolve, repository):
        bet = staked_bet({"option_1": ["w1"]})
        with pytest.raises(NotFound):
            resolve.execute(resolve_request(bet, "option_9"))
        assert repository.get(bet.id).status == BetStatus.LOCKED

    def test_second_resolution_is_rejected_and_pays_nothing(self, staked_bet, resolve, ledger):
        bet = staked_bet({"option_1": ["w1"], "option_2": ["l1"]})
        resolve.execute(resolve_request(bet))

        with pytest.raises(InvalidState):
            resolve.execute(resolve_request(bet, "option_2"))
        assert ledger.credits_to("w1") == [200]
        assert ledger.credits_to("l1") == []

    def test_concurrent_resolutions_pay_once(self, staked_bet, resolve, ledger):
        bet = staked_bet({"option_1": ["w1", "w2"], "option_2": ["l1"]})

        outcomes = run_concurrently(
            lambda: resolve.execute(resolve_request(bet, "option_1")),
            lambda: resolve.execute(resolve_request(bet, "option_2")),
        )

        assert sum(isinstance(o, InvalidState) for o in outcomes) == 1
        credited = sum(ledger.credits_to("w1") + ledger.credits_to("w2") + ledger.credits_to("l1"))
        assert credited == 300
        assert len(ledger.credits_to("w1")) + len(ledger.credits_to("l1")) == 1


class TestPartialSettlement:
    def test_failed_credit_is_reported_and_recorded(self, staked_bet, resolve, ledger, repository):
        bet = staked_bet({"option_1": ["w1", "w2"], "option_2": ["l1"]})
        ledger.failing_credit_users.add("w2")

        with pytest.raises(PartialSettlementFailure) as excinfo:
            resolve.execute(resolve_request(bet))

        assert excinfo.value.resolved_winners == ["w1"]
        assert excinfo.value.failed_winners == ["w2"]
        stored = repository.get(bet.id)
        assert stored.status == BetStatus.COMPLETED
        assert stored.payout_status == PayoutStatus.PARTIAL
        assert stored.failed_payouts == ["w2"]
        assert ledger.get_balance("w1") == 1050

    def test_transient_credit_failure_is_retried(self, staked_bet, resolve, ledger):
        bet = staked_bet({"option_1": ["w1"], "option_2": ["l1"]})
        ledger.credit_failures_left["w1"] = 1

        result = resolve.execute(resolve_request(bet))
        assert result.paid_winners == ["w1"]
        assert ledger.get_balance("w1") == 1100

    def test_retry_failed_payouts_settles_without_double_paying(self, staked_bet, resolve, ledger, repository):
        bet = staked_bet({"option_1": ["w1", "w2"], "option_2": ["l1"]})
        ledger.failing_credit_users.add("w2")
        with pytest.raises(PartialSettlementFailure):
            resolve.execute(resolve_request(bet))

        ledger.failing_credit_users.clear()
        result = resolve.retry_failed_payouts(bet.id)

        assert result.payout_status == "settled"
        assert sorted(result.paid_winners) == ["w1", "w2"]
        assert ledger.credits_to("w1") == [150]
        assert ledger.credits_to("w2") == [150]
        assert repository.get(bet.id).failed_payouts == []

        again = resolve.retry_failed_payouts(bet.id)
        assert again.failed_winners == []
        assert ledger.credits_to("w2") == [150]

    def test_unrecorded_payout_pass_is_reported_and_reconciled(self, staked_bet, resolve, ledger, repository):
        bet = staked_bet({"option_1": ["w1", "w2"], "option_2": ["l1"]})
        ledger.failing_credit_users.add("w2")
        # The completion write lands, the payout bookkeeping write does not
        repository.replace_failures_after = 1
        repository.replace_failures = 1

        with pytest.raises(PartialSettlementFailure) as excinfo:
            resolve.execute(resolve_request(bet))

        assert excinfo.value.resolved_winners == ["w1"]
        assert excinfo.value.failed_winners == ["w2"]
        stored = repository.get(bet.id)
        assert stored.status == BetStatus.COMPLETED
        assert stored.payout_status == PayoutStatus.PENDING
        assert stored.failed_payouts == []

        ledger.failing_credit_users.clear()
        result = resolve.retry_failed_payouts(bet.id)

        assert result.payout_status == "settled"
        assert sorted(result.paid_winners) == ["w1", "w2"]
        assert ledger.credits_to("w1") == [150]
        assert ledger.credits_to("w2") == [150]
        assert repository.get(bet.id).payout_status == PayoutStatus.SETTLED

    def test_unrecorded_but_complete_payout_pass_settles_on_retry(self, staked_bet, resolve, ledger, repository):
        bet = staked_bet({"option_1": ["w1"], "option_2": ["l1"]})
        repository.replace_failures_after = 1
        repository.replace_failures = 1

        result = resolve.execute(resolve_request(bet))
        assert result.payout_status == "pending"
        assert result.paid_winners == ["w1"]

        result = resolve.retry_failed_payouts(bet.id)
        assert result.payout_status == "settled"
        assert ledger.credits_to("w1") == [200]

    def test_retry_on_unresolved_bet(self, staked_bet, resolve):
        bet = staked_bet({"option_1": ["w1"]})
        with pytest.raises(InvalidState):
            resolve.retry_failed_payouts(bet.id)
