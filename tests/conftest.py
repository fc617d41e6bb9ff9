"""Shared fixtures: use cases wired to in-memory ports and a controllable clock"""
import pytest

from bet_ledger.application.dto.create_bet_request import CreateBetRequest
from bet_ledger.application.dto.place_bet_request import PlaceBetRequest
from bet_ledger.application.use_cases.bet_lifecycle_use_case import BetLifecycleUseCase
from bet_ledger.application.use_cases.bet_results_use_case import BetResultsUseCase
from bet_ledger.application.use_cases.place_bet_use_case import PlaceBetUseCase
from bet_ledger.application.use_cases.resolve_bet_use_case import ResolveBetUseCase

from tests.fakes import FakeClock, InMemoryBetRepository, InMemoryPointsLedger, RecordingPublisher

HOUR = 3600


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository():
    return InMemoryBetRepository()


@pytest.fixture
def ledger():
    return InMemoryPointsLedger(default_balance=1000)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def lifecycle(repository, publisher, clock):
    return BetLifecycleUseCase(repository, publisher, clock=clock)


@pytest.fixture
def place_bet(repository, ledger, lifecycle):
    return PlaceBetUseCase(repository, ledger, lifecycle, cas_attempts=50)


@pytest.fixture
def resolve(repository, ledger, publisher, clock):
    return ResolveBetUseCase(repository, ledger, publisher, clock=clock, payout_retry_attempts=2)


@pytest.fixture
def results(repository):
    return BetResultsUseCase(repository)


@pytest.fixture
def make_bet(lifecycle, clock):
    """Create an open bet; defaults to two options, 100 coins, expiring in 48h"""
    def _make_bet(options=("Yes", "No"), wager_amount=100, expires_in=48 * HOUR,
                  creator_id="creator", group_id="group-1"):
        return lifecycle.create_bet(CreateBetRequest(
            group_id=group_id,
            creator_id=creator_id,
            question="Will it rain tomorrow?",
            answer_options=list(options),
            wager_amount=wager_amount,
            expires_at=clock() + expires_in
        ))
    return _make_bet


@pytest.fixture
def join(place_bet):
    def _join(bet_id, user_id, option_id):
        return place_bet.execute(PlaceBetRequest(bet_id=bet_id, user_id=user_id, option_id=option_id))
    return _join
