from .create_bet_request import CreateBetRequest
from .edit_bet_request import EditBetRequest
from .place_bet_request import PlaceBetRequest
from .resolve_bet_request import ResolveBetRequest
from .bet_response import BetResponse
from .settlement_response import SettlementResponse
from .bet_results_response import BetResultsResponse
from .bet_stats_response import BetStatsResponse, OptionStats

__all__ = [
    'CreateBetRequest',
    'EditBetRequest',
    'PlaceBetRequest',
    'ResolveBetRequest',
    'BetResponse',
    'SettlementResponse',
    'BetResultsResponse',
    'BetStatsResponse',
    'OptionStats'
]
