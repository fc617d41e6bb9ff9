from .handlers import (
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

__all__ = [
    'BetHandler',
    'BetResultsHandler',
    'BetStatsHandler',
    'GroupBetsHandler',
    'HealthHandler',
    'JoinBetHandler',
    'LockBetHandler',
    'MetricsHandler',
    'ResolveBetHandler',
    'RetryPayoutsHandler',
    'UserBetsHandler'
]
