"""
Bet Ledger - Clean Architecture Entry Point

Serves the bet lifecycle, staking and settlement API over HTTP REST and
runs a periodic sweep that locks expired bets and announces bets about
to expire. Configuration comes from environment variables, see
bet_ledger.config.settings.
"""
import logging
from typing import Optional

import sentry_sdk
from tornado import web, ioloop
from sentry_sdk.integrations.tornado import TornadoIntegration

from bet_ledger.config.container import Container
from bet_ledger.config.settings import Settings
from bet_ledger.application.use_cases.bet_lifecycle_use_case import BetLifecycleUseCase
from bet_ledger.application.use_cases.bet_results_use_case import BetResultsUseCase
from bet_ledger.application.use_cases.place_bet_use_case import PlaceBetUseCase
from bet_ledger.application.use_cases.resolve_bet_use_case import ResolveBetUseCase
from bet_ledger.presentation.http.handlers import (
    BetHandler,
    BetResultsHandler,
    BetStatsHandler,
    GroupBetsHandler,
    HealthHandler,
    JoinBetHandler,
    LockBetHandler,
    MetricsHandler,
    ResolveBetHandler,
    RetryPayoutsHandler,
    UserBetsHandler
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


def init_sentry(settings: Settings):
    """Initialize Sentry with the Tornado integration"""
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[TornadoIntegration()],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        environment=settings.sentry_environment,
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
        debug=settings.sentry_debug,
        release=f"bet-ledger@{settings.app_version}",
        auto_session_tracking=True
    )


def make_app(
    lifecycle_use_case: BetLifecycleUseCase,
    place_bet_use_case: PlaceBetUseCase,
    resolve_bet_use_case: ResolveBetUseCase,
    results_use_case: BetResultsUseCase
) -> web.Application:
    """Create Tornado application with Clean Architecture handlers"""
    lifecycle = {"lifecycle_use_case": lifecycle_use_case}
    resolve = {"resolve_bet_use_case": resolve_bet_use_case}
    results = {"results_use_case": results_use_case}

    routes = [
        (r"/health", HealthHandler),
        (r"/metrics", MetricsHandler),
        (r"/groups/([^/]+)/bets", GroupBetsHandler, lifecycle),
        (r"/bets/([^/]+)", BetHandler, lifecycle),
        (r"/bets/([^/]+)/join", JoinBetHandler, {"place_bet_use_case": place_bet_use_case}),
        (r"/bets/([^/]+)/lock", LockBetHandler, lifecycle),
        (r"/bets/([^/]+)/resolve", ResolveBetHandler, resolve),
        (r"/bets/([^/]+)/payouts/retry", RetryPayoutsHandler, resolve),
        (r"/bets/([^/]+)/results", BetResultsHandler, results),
        (r"/bets/([^/]+)/stats", BetStatsHandler, results),
        (r"/users/([^/]+)/bets", UserBetsHandler, lifecycle),
    ]

    return web.Application(routes)


def run_expiry_sweep(lifecycle_use_case: BetLifecycleUseCase):
    """One pass of the background sweep; errors are reported and the next pass runs anyway"""
    try:
        lifecycle_use_case.lock_expired_bets()
        lifecycle_use_case.notify_expiring_bets()
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}")
        sentry_sdk.capture_exception(e)


def start_expiry_sweep(
    lifecycle_use_case: BetLifecycleUseCase,
    interval_seconds: float
) -> Optional[ioloop.PeriodicCallback]:
    if interval_seconds <= 0:
        logger.info("Expiry sweep disabled")
        return None
    sweep = ioloop.PeriodicCallback(
        lambda: run_expiry_sweep(lifecycle_use_case),
        interval_seconds * 1000
    )
    sweep.start()
    return sweep


def main():
    settings = Settings.from_env()
    init_sentry(settings)

    container = Container(settings)
    app = make_app(
        container.lifecycle_use_case,
        container.place_bet_use_case,
        container.resolve_bet_use_case,
        container.results_use_case
    )
    app.listen(settings.port)
    start_expiry_sweep(container.lifecycle_use_case, settings.expiry_sweep_interval)

    logger.info(f"Bet Ledger started on :{settings.port}")
    try:
        ioloop.IOLoop.current().start()
    finally:
        container.close()


if __name__ == "__main__":
    main()
