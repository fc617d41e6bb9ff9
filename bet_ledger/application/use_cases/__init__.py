from .bet_lifecycle_use_case import BetLifecycleUseCase
from .place_bet_use_case import PlaceBetUseCase
from .resolve_bet_use_case import ResolveBetUseCase
from .bet_results_use_case import BetResultsUseCase

__all__ = [
    'BetLifecycleUseCase',
    'PlaceBetUseCase',
    'ResolveBetUseCase',
    'BetResultsUseCase'
]
